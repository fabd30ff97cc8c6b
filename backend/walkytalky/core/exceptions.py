"""Custom exceptions for the WalkyTalky application."""

from __future__ import annotations


class WalkyTalkyError(Exception):
    """Base exception for all WalkyTalky errors."""

    kind = "Internal"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "kind": self.kind, **self.details}


class StorageError(WalkyTalkyError):
    """Raised when the durable store fails. Nothing from the request was committed."""

    kind = "Internal"
    status_code = 500


# =============================================================================
# NotFound
# =============================================================================


class NotFoundError(WalkyTalkyError):
    """Raised when a party, team, code or profile does not exist."""

    kind = "NotFound"
    status_code = 404


class PartyNotFoundError(NotFoundError):
    def __init__(self, party_id: str) -> None:
        super().__init__("Party not found", {"party_id": party_id})


class TeamNotFoundError(NotFoundError):
    def __init__(self, team_id: str) -> None:
        super().__init__("Team not found", {"team_id": team_id})


class CodeNotFoundError(NotFoundError):
    """Unknown or revoked join code. Reported as a bad request, not a missing resource."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invalid code")


# =============================================================================
# Unauthorized
# =============================================================================


class UnauthorizedError(WalkyTalkyError):
    """Raised when the actor lacks admin, membership or a setting-granted permission."""

    kind = "Unauthorized"
    status_code = 403


class AdminRequiredError(UnauthorizedError):
    def __init__(self, action: str = "perform this action") -> None:
        super().__init__(f"Only party admins can {action}")


class NotAMemberError(UnauthorizedError):
    kind = "NotAMember"

    def __init__(self, user_id: str) -> None:
        super().__init__("Not a party member", {"user_id": user_id})


class NotATeamMemberError(UnauthorizedError):
    kind = "NotATeamMember"

    def __init__(self, user_id: str, team_id: str) -> None:
        super().__init__("Not a team member", {"user_id": user_id, "team_id": team_id})


class PrivateTeamError(UnauthorizedError):
    kind = "PrivateTeam"

    def __init__(self, team_id: str) -> None:
        super().__init__("Team is private", {"team_id": team_id})


class MediaDisabledError(UnauthorizedError):
    kind = "MediaDisabled"

    def __init__(self, media_kind: str) -> None:
        super().__init__(f"Sharing {media_kind} is disabled for this party")


class PasswordRequiredError(UnauthorizedError):
    """Missing or wrong party password. Clients re-prompt; single-use codes are not consumed."""

    kind = "PasswordRequired"
    status_code = 401

    def __init__(self) -> None:
        super().__init__("Incorrect password", {"requires_password": True})


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(WalkyTalkyError):
    """Raised when the request contradicts current state."""

    kind = "Conflict"
    status_code = 400


class CodeAlreadyUsedError(ConflictError):
    kind = "AlreadyUsed"

    def __init__(self) -> None:
        super().__init__("Code already used")


class AlreadyAdminError(ConflictError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User is already an admin", {"user_id": user_id})


class InvalidTargetError(ConflictError):
    kind = "InvalidTarget"


class LastAdminError(ConflictError):
    kind = "LastAdmin"

    def __init__(self) -> None:
        super().__init__("Cannot remove the last admin")


# =============================================================================
# CapacityExceeded
# =============================================================================


class CapacityExceededError(WalkyTalkyError):
    """Raised when a party, team or per-user team limit is reached."""

    kind = "CapacityExceeded"
    status_code = 400


class PartyFullError(CapacityExceededError):
    kind = "Full"

    def __init__(self) -> None:
        super().__init__("Party is full")


class TeamFullError(CapacityExceededError):
    kind = "Full"

    def __init__(self, team_id: str) -> None:
        super().__init__("Team is full", {"team_id": team_id})


class MultipleTeamsNotAllowedError(CapacityExceededError):
    kind = "MultipleTeamsNotAllowed"

    def __init__(self) -> None:
        super().__init__("Already in a team")


class MaxTeamsReachedError(CapacityExceededError):
    kind = "MaxTeamsReached"

    def __init__(self, limit: int) -> None:
        super().__init__("Maximum teams reached", {"max_teams_per_user": limit})


# =============================================================================
# Validation
# =============================================================================


class ValidationError(WalkyTalkyError):
    """Raised when input validation fails."""

    kind = "Validation"
    status_code = 400
