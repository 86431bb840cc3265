"""Error taxonomy for boundary operations.

The engine's computation functions never raise. Only boundary operations
(submitting a day, redeeming a token, syncing the cache) raise these, and the
bot layer turns them into replies via ``str(error)``.
"""


class MizanError(Exception):
    """Base class for errors that are reported to the user verbatim."""


class ValidationError(MizanError):
    """Malformed input, rejected before any state changes."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ConflictError(MizanError):
    """The operation conflicts with the current state and must not be retried."""


class DaySealedError(ConflictError):
    def __init__(self, day):
        self.day = day
        super().__init__(f"{day.isoformat()} is already submitted and sealed.")


class OutstandingDebtError(ConflictError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"You have {count} unresolved debt{'s' if count != 1 else ''}. "
            "Resolve them before submitting."
        )


class TokenAlreadyRedeemed(ConflictError):
    def __init__(self):
        super().__init__("Activation link has already been used.")


class TokenExpired(ConflictError):
    def __init__(self):
        super().__init__("Activation link has expired.")


class TokenOwnerMismatch(ConflictError):
    def __init__(self):
        super().__init__("This activation link is assigned to a different account.")


class NotFoundError(MizanError):
    """A referenced user, day, penalty or token does not exist."""


class TransientError(MizanError):
    """Datastore failure during a background operation; safe to retry later."""
