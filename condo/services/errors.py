class NotificationError(Exception):
    """Base class for notification engine failures."""


class NotificationStoreError(NotificationError):
    """The notification row itself could not be written."""


class NoPermittedTargets(NotificationError):
    """A limited administrator addressed only condominiums outside their scope."""

    def __init__(self, requested: frozenset[int]):
        self.requested = requested
        super().__init__(f"No permitted condominiums in target list {sorted(requested)}")


class TargetingError(NotificationError):
    """The recipients of a notification could not be resolved."""
