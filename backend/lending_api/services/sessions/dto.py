# lending_api/services/sessions/dto.py
from __future__ import annotations

from dataclasses import dataclass

from lending_api.services._shared.ports.refresh_token_store import RefreshTokenRecord


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """
    Output of an issuance.

    :param credential: Plaintext refresh credential. Returned exactly once;
        it cannot be retrieved again from storage.
    :type credential: str
    :param record: The persisted record.
    :type record: RefreshTokenRecord
    """

    credential: str
    record: RefreshTokenRecord

    def __repr__(self) -> str:  # never leak the plaintext into logs/tracebacks
        return f"IssuedToken(record_id={self.record.id!r})"


@dataclass(frozen=True, slots=True)
class RotationOut:
    """
    Output of a successful rotation.

    :param user_id: Owner of the rotated chain.
    :type user_id: str
    :param credential: Plaintext credential of the descendant.
    :type credential: str
    :param record: The descendant record.
    :type record: RefreshTokenRecord
    """

    user_id: str
    credential: str
    record: RefreshTokenRecord

    def __repr__(self) -> str:
        return f"RotationOut(user_id={self.user_id!r}, record_id={self.record.id!r})"
