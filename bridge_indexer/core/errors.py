"""
Error kinds raised while indexing bridge events.

Per-event problems derive from `EventSkipped`: the indexing loop logs them and
moves on to the next event. Everything else aborts the pass.
"""


class BridgeIndexerError(Exception):
    """Base class for all indexer errors."""


class ConfigError(BridgeIndexerError):
    pass


class EventSkipped(BridgeIndexerError):
    """An event that produces no record; the rest of the batch continues."""

    log_level = "info"


class UnknownTopicError(EventSkipped):
    def __init__(self, topic_hash: str):
        super().__init__(f"topic {topic_hash} is not a registered bridge event")
        self.topic_hash = topic_hash


class UncoveredEventError(EventSkipped):
    log_level = "warning"

    def __init__(self, event_name: str):
        super().__init__(f"IN event {event_name!r} is not covered")
        self.event_name = event_name


class MissingReceivedValueError(EventSkipped):
    log_level = "error"


class UnresolvedTokenError(EventSkipped):
    log_level = "error"


class PoolResolutionError(BridgeIndexerError):
    """Pool probing failed for a reason other than reaching the end of the list."""
