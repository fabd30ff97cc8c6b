"""
Code Registry

Issues, validates and redeems join codes. Uniqueness is global: every
candidate is checked against the whole code index, not just the party's own
codes. All methods operate on a ``PartyState`` so they commit (or roll back)
together with the party mutation they belong to.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from walkytalky.core.config import CODE_ALPHABET, JOIN_CODE_LENGTH, SINGLE_USE_CODE_COUNT
from walkytalky.core.exceptions import (
    CodeAlreadyUsedError,
    CodeNotFoundError,
    PartyNotFoundError,
    PasswordRequiredError,
    ValidationError,
)
from walkytalky.core.logging import get_logger
from walkytalky.core.utils import verify_password
from walkytalky.repositories.base import PartyState
from walkytalky.schemas.models import CodeKind, JoinCode, SingleUseCode

logger = get_logger("walkytalky.services.codes")


@dataclass(frozen=True)
class Redemption:
    party_id: str
    kind: CodeKind


class CodeRegistry:
    def __init__(
        self,
        length: int = JOIN_CODE_LENGTH,
        single_use_count: int = SINGLE_USE_CODE_COUNT,
        alphabet: str = CODE_ALPHABET,
    ) -> None:
        self.length = length
        self.single_use_count = single_use_count
        self.alphabet = alphabet

    def generate(self) -> str:
        """Draw one random candidate code."""
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def normalize(self, code: str) -> str:
        """Trim and upper-case a user-supplied code, rejecting malformed input."""
        normalized = (code or "").strip().upper()
        if len(normalized) != self.length or any(ch not in self.alphabet for ch in normalized):
            raise ValidationError(
                f"Join codes are {self.length} letters or digits",
                {"code": code},
            )
        return normalized

    def issue(self, state: PartyState, kind: CodeKind) -> str:
        """
        Reserve a code that exists nowhere in the global index.

        Codes deleted earlier in the same transaction are skipped too, so a
        regenerated set never reuses a code it just revoked.
        """
        while True:
            candidate = self.generate()
            if candidate in state.code_writes or state.get_code(candidate) is not None:
                logger.debug(f"Code candidate {candidate} taken, drawing again")
                continue
            state.add_code(JoinCode(code=candidate, party_id=state.party_id, kind=kind))
            return candidate

    def issue_single_use_codes(self, state: PartyState) -> list[SingleUseCode]:
        return [
            SingleUseCode(code=self.issue(state, CodeKind.SINGLE_USE))
            for _ in range(self.single_use_count)
        ]

    def redeem(
        self,
        state: PartyState,
        code: str,
        user_id: str,
        password: str | None = None,
    ) -> Redemption:
        """
        Validate a code for admission into ``state.party``.

        Checks run in order: code exists for this party, single-use code is
        unused, party exists, password matches. Nothing is consumed here; the
        caller calls ``consume`` once the member is actually admitted, in the
        same transaction.

        Raises:
            CodeNotFoundError, CodeAlreadyUsedError, PartyNotFoundError,
            PasswordRequiredError
        """
        entry = state.get_code(code)
        if entry is None or entry.party_id != state.party_id:
            raise CodeNotFoundError()

        if entry.kind == CodeKind.SINGLE_USE and entry.used:
            raise CodeAlreadyUsedError()

        party = state.party
        if party is None:
            raise PartyNotFoundError(state.party_id)

        if party.password_hash is not None and not verify_password(password, party.password_hash):
            logger.info(f"Password rejected for user {user_id} on party {party.id}")
            raise PasswordRequiredError()

        return Redemption(party_id=party.id, kind=entry.kind)

    def consume(self, state: PartyState, code: str) -> None:
        """Flip a single-use code to used, in the index and on the party record."""
        entry = state.get_code(code)
        if entry is None or entry.kind != CodeKind.SINGLE_USE:
            return
        state.put_code(entry.model_copy(update={"used": True}))
        for single_use in state.party.single_use_codes:
            if single_use.code == code:
                single_use.used = True

    def regenerate(self, state: PartyState) -> list[SingleUseCode]:
        """Revoke every current single-use code and issue a fresh set. The everyone code stays."""
        for single_use in state.party.single_use_codes:
            state.delete_code(single_use.code)
        state.party.single_use_codes = self.issue_single_use_codes(state)
        return state.party.single_use_codes
