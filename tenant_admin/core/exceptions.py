class DataTableConfigError(ValueError):
    """Raised when a table definition or component registry is misconfigured."""


class NotificationError(ValueError):
    """Raised when a notification cannot be built (missing title or target)."""


class BroadcastError(RuntimeError):
    """Raised when a realtime event could not be handed to the transport."""
