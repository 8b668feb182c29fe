"""Error taxonomy shared by the sync core.

Transport and database failures are translated into these exceptions at the
boundary that detects them, so callers above the gateway and the local store
never see raw ``httpx`` or SQLAlchemy errors.
"""

from __future__ import annotations


class LetItOutError(RuntimeError):
    """Base exception for all sync-core failures."""


class RemoteUnavailable(LetItOutError):
    """The backend cannot be used right now (network, timeout, 5xx, open circuit)."""


class RemoteRejected(LetItOutError):
    """The backend answered and refused the request permanently (4xx).

    Retrying the same request will not change the answer.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageUnavailable(LetItOutError):
    """A local store operation failed."""


class IdentityUnavailable(StorageUnavailable):
    """The device identity could not be read or persisted."""


class NotFound(LetItOutError):
    """A requested entity (draft, vent, mood log) does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class NotADraft(LetItOutError):
    """Publish was requested for a vent that is already published."""

    def __init__(self, vent_id: str) -> None:
        super().__init__(f"Vent {vent_id} is not a draft")
        self.vent_id = vent_id


class ValidationFailure(LetItOutError):
    """A payload was rejected before reaching the store or the backend."""
