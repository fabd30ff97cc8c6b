"""
Party Store

Owns Party records: creation, settings, password, admin set, code
regeneration and deletion. Every mutation is one party transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from walkytalky.core.exceptions import (
    AdminRequiredError,
    AlreadyAdminError,
    InvalidTargetError,
    LastAdminError,
    PartyNotFoundError,
    ValidationError,
)
from walkytalky.core.logging import LogContext, get_logger
from walkytalky.core.utils import hash_password, utc_now_iso
from walkytalky.repositories.base import PartyRepository, PartyState
from walkytalky.schemas.models import (
    EVERYONE_CHANNEL,
    CodeKind,
    Member,
    Party,
    PartySettings,
    SettingsPatch,
    Team,
)
from walkytalky.services import access_control
from walkytalky.services.code_registry import CodeRegistry

logger = get_logger("walkytalky.services.party")


@dataclass
class PartyOverview:
    party: Party
    members: list[Member]
    teams: list[Team]


def _require_party(state: PartyState) -> Party:
    if state.party is None:
        raise PartyNotFoundError(state.party_id)
    return state.party


def _require_admin(party: Party, user_id: str, action: str) -> None:
    if not access_control.is_admin(party, user_id):
        raise AdminRequiredError(action)


class PartyStore:
    def __init__(self, repository: PartyRepository, codes: Optional[CodeRegistry] = None) -> None:
        self.repository = repository
        self.codes = codes or CodeRegistry()

    def create(
        self,
        owner_user_id: str,
        name: str,
        description: str = "",
        banner: Optional[str] = None,
        settings: Optional[SettingsPatch] = None,
        password: Optional[str] = None,
    ) -> Party:
        """
        Create a party owned by ``owner_user_id``.

        The owner becomes the sole admin and first member. One everyone code
        and the single-use set are minted, and the everyone channel is opened.
        Nothing is visible unless every step commits.

        Args:
            owner_user_id: Creator's user ID
            name: Display name (required)
            description: Free text
            banner: Opaque banner reference
            settings: Overrides merged onto the default settings
            password: Optional join password; empty means none

        Returns:
            The created party
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Party name is required")

        party_id = str(uuid4())
        merged_settings = (settings or SettingsPatch()).apply_to(PartySettings())
        password_hash = hash_password(password) if password else None

        def _create(state: PartyState) -> Party:
            now = utc_now_iso()
            state.party = Party(
                id=party_id,
                name=name,
                description=description or "",
                banner=banner,
                password_hash=password_hash,
                settings=merged_settings,
                admin_ids=[owner_user_id],
                everyone_code=self.codes.issue(state, CodeKind.EVERYONE),
                single_use_codes=self.codes.issue_single_use_codes(state),
                created_at=now,
            )
            state.members = [Member(party_id=party_id, user_id=owner_user_id, joined_at=now)]
            state.teams = []
            state.new_channels.append(EVERYONE_CHANNEL)
            return state.party

        with LogContext(logger, "create_party", party_id=party_id, user_id=owner_user_id):
            return self.repository.run_in_transaction(party_id, _create, create=True)

    def get(self, party_id: str) -> Party:
        party = self.repository.get_party(party_id)
        if party is None:
            raise PartyNotFoundError(party_id)
        return party

    def get_overview(self, party_id: str) -> PartyOverview:
        """Party with its member and team lists."""
        party = self.get(party_id)
        return PartyOverview(
            party=party,
            members=self.repository.list_members(party_id),
            teams=self.repository.list_teams(party_id),
        )

    def update_settings(self, party_id: str, acting_user_id: str, patch: SettingsPatch) -> Party:
        def _update(state: PartyState) -> Party:
            party = _require_party(state)
            _require_admin(party, acting_user_id, "change settings")
            party.settings = patch.apply_to(party.settings)
            return party

        with LogContext(logger, "update_settings", party_id=party_id, user_id=acting_user_id):
            return self.repository.run_in_transaction(party_id, _update)

    def update_password(self, party_id: str, acting_user_id: str, new_password: Optional[str]) -> Party:
        """Set or clear (``None`` / empty) the party's join password."""
        password_hash = hash_password(new_password) if new_password else None

        def _update(state: PartyState) -> Party:
            party = _require_party(state)
            _require_admin(party, acting_user_id, "change the password")
            party.password_hash = password_hash
            return party

        with LogContext(logger, "update_password", party_id=party_id, user_id=acting_user_id):
            return self.repository.run_in_transaction(party_id, _update)

    def regenerate_codes(self, party_id: str, acting_user_id: str) -> Party:
        def _regenerate(state: PartyState) -> Party:
            party = _require_party(state)
            _require_admin(party, acting_user_id, "regenerate join codes")
            self.codes.regenerate(state)
            return party

        with LogContext(logger, "regenerate_codes", party_id=party_id, user_id=acting_user_id):
            return self.repository.run_in_transaction(party_id, _regenerate)

    def add_admin(self, party_id: str, acting_user_id: str, target_user_id: str) -> Party:
        def _add(state: PartyState) -> Party:
            party = _require_party(state)
            _require_admin(party, acting_user_id, "add admins")
            if access_control.is_admin(party, target_user_id):
                raise AlreadyAdminError(target_user_id)
            if not access_control.is_member(state.members, target_user_id):
                raise InvalidTargetError("User is not a party member", {"user_id": target_user_id})
            party.admin_ids.append(target_user_id)
            return party

        with LogContext(logger, "add_admin", party_id=party_id, user_id=acting_user_id):
            return self.repository.run_in_transaction(party_id, _add)

    def remove_admin(self, party_id: str, acting_user_id: str, target_user_id: str) -> Party:
        def _remove(state: PartyState) -> Party:
            party = _require_party(state)
            _require_admin(party, acting_user_id, "remove admins")
            if not access_control.is_admin(party, target_user_id):
                raise InvalidTargetError("User is not an admin", {"user_id": target_user_id})
            if len(party.admin_ids) == 1:
                raise LastAdminError()
            party.admin_ids = [uid for uid in party.admin_ids if uid != target_user_id]
            return party

        with LogContext(logger, "remove_admin", party_id=party_id, user_id=acting_user_id):
            return self.repository.run_in_transaction(party_id, _remove)

    def delete(self, party_id: str, acting_user_id: str) -> None:
        """Delete the party and every record scoped to it. Admin only."""

        def _authorize(party: Optional[Party]) -> None:
            if party is None:
                raise PartyNotFoundError(party_id)
            _require_admin(party, acting_user_id, "delete the party")

        with LogContext(logger, "delete_party", party_id=party_id, user_id=acting_user_id):
            self.repository.delete_party(party_id, authorize=_authorize)
