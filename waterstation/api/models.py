"""Request and response models for the station API."""

from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

TagValueIn = Union[bool, int, float, str]


class ControlRequest(BaseModel):
    tag: str
    value: TagValueIn
    endpoint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("endpoint", "url")
    )


class ControlResponse(BaseModel):
    success: bool = True
    tag: str
    value: Any


class ConnectionCheckRequest(BaseModel):
    endpoint: str = Field(validation_alias=AliasChoices("endpoint", "url"))


class ConnectionCheckResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    mock: Optional[bool] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
