"""
murmur.errors — Error taxonomy for the scoring engine and integrity subsystem.

  ValidationError   rejected before any side effect (400)
  ConflictError     rejected atomically by the store (409)
  NotFoundError     missing claim / voter / commitment (404)
  StorageError      infrastructure failure (500)

Integrity findings (violations) are results, not errors.
"""


class MurmurError(Exception):
    """Base class. `code` is a stable machine-readable identifier."""

    status_code = 500
    default_message = "murmur error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ─── Validation ────────────────────────────────────────────────────

class ValidationError(MurmurError):
    status_code = 400
    default_message = "Invalid input"


class InvalidCredits(ValidationError):
    default_message = "Credits must be between 1 and 100"


class InvalidIdentifier(ValidationError):
    default_message = "Malformed identifier"


# ─── State conflicts ───────────────────────────────────────────────

class ConflictError(MurmurError):
    status_code = 409
    default_message = "State conflict"


class AlreadyVoted(ConflictError):
    default_message = "You have already voted on this rumor"


class ClaimNotActive(ConflictError):
    default_message = "Cannot vote on deleted or archived rumors"


class DuplicateCommitment(ConflictError):
    default_message = "A commitment already exists for this hour"


# ─── Not found ─────────────────────────────────────────────────────

class NotFoundError(MurmurError):
    status_code = 404
    default_message = "Not found"


class ClaimNotFound(NotFoundError):
    default_message = "Rumor not found"


class VoterNotFound(NotFoundError):
    default_message = "Voter not found. Please register first."


class CommitmentNotFound(NotFoundError):
    default_message = "Commitment not found"


class ClaimNotInCommitment(NotFoundError):
    default_message = "Rumor not found in commitment"


# ─── Infrastructure ────────────────────────────────────────────────

class StorageError(MurmurError):
    status_code = 500
    default_message = "Storage failure"


__all__ = [
    "MurmurError",
    "ValidationError",
    "InvalidCredits",
    "InvalidIdentifier",
    "ConflictError",
    "AlreadyVoted",
    "ClaimNotActive",
    "DuplicateCommitment",
    "NotFoundError",
    "ClaimNotFound",
    "VoterNotFound",
    "CommitmentNotFound",
    "ClaimNotInCommitment",
    "StorageError",
]
