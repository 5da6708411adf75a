"""Fan-out of tag changes to downstream listeners."""

from .channel import DistributionChannel, ListenerRegistration, QueueListener

__all__ = ["DistributionChannel", "ListenerRegistration", "QueueListener"]
