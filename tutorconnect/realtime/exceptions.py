class RealtimeError(Exception):
    """Request-level failure reported back to the caller as an ``error`` event."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDenied(RealtimeError):
    default_message = "Access denied"


class InvalidPayload(RealtimeError):
    default_message = "Invalid payload"


class NotParticipant(RealtimeError):
    default_message = "Not a participant in this session"
