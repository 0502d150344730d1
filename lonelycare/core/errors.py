"""Exception types raised by collaborator clients."""


class LonelyCareError(Exception):
    """Base class for lonelycare errors."""


class PushDispatchError(LonelyCareError):
    """Raised when the push dispatch endpoint rejects or cannot receive a request."""


class EmergencyServiceError(LonelyCareError):
    """Raised when the emergency-services integration is unusable."""


class ChannelUnavailable(LonelyCareError):
    """Raised by a channel that has nothing to deliver to (no connection, not configured)."""
