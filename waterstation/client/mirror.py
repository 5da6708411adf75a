"""Consumer-side copy of the tag snapshot, fed by distribution events."""

from typing import Any


class ClientTagMirror:
    def __init__(self):
        self.values: dict[str, Any] = {}
        self.initialised = False

    def apply(self, event: dict[str, Any]) -> list[tuple[str, Any]]:
        """
        Apply one event and return the (tag, value) pairs it changed.

        An initial event replaces the whole mirror; a tag event updates one entry.
        """
        if "initial" in event:
            previous = self.values
            self.values = dict(event["initial"] or {})
            self.initialised = True
            return [
                (name, value)
                for name, value in self.values.items()
                if name not in previous or previous[name] != value
            ]

        if "tag" in event:
            name, value = event["tag"], event.get("value")
            changed = self.values.get(name, object()) != value
            self.values[name] = value
            return [(name, value)] if changed else []

        return []
