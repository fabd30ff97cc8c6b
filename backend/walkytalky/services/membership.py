"""
Membership Manager

Owns Member and Team records of a party and enforces the membership caps,
team capacity, and per-user team limits. Joins, team creation and team joins
are each a single party transaction, so concurrent requests racing for the
last seat or the same single-use code produce exactly one winner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from walkytalky.core.exceptions import (
    CodeNotFoundError,
    MaxTeamsReachedError,
    MultipleTeamsNotAllowedError,
    NotAMemberError,
    PartyFullError,
    PartyNotFoundError,
    PrivateTeamError,
    TeamFullError,
    TeamNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from walkytalky.core.logging import LogContext, get_logger
from walkytalky.core.utils import utc_now_iso
from walkytalky.repositories.base import PartyRepository, PartyState
from walkytalky.schemas.models import CodeKind, Member, Party, PartySettings, Team
from walkytalky.services import access_control
from walkytalky.services.code_registry import CodeRegistry

logger = get_logger("walkytalky.services.membership")

DEFAULT_TEAM_COLOR = "#3b82f6"


@dataclass
class JoinResult:
    party: Party
    member: Member
    already_member: bool = False


@dataclass
class TeamJoinResult:
    team: Team
    already_member: bool = False


def _enforce_team_limits(settings: PartySettings, member: Member) -> None:
    """Raise if ``member`` may not belong to one more team."""
    if access_control.multiple_teams_blocked(settings, member):
        raise MultipleTeamsNotAllowedError()
    if access_control.team_limit_reached(settings, member):
        raise MaxTeamsReachedError(settings.max_teams_per_user)


class MembershipManager:
    def __init__(self, repository: PartyRepository, codes: Optional[CodeRegistry] = None) -> None:
        self.repository = repository
        self.codes = codes or CodeRegistry()

    # =========================================================================
    # Party membership
    # =========================================================================

    def join(
        self,
        user_id: str,
        code: str,
        password: Optional[str] = None,
        party_id: Optional[str] = None,
    ) -> JoinResult:
        """
        Admit ``user_id`` to the party a join code belongs to.

        Order of checks: code exists, single-use code unused, party exists,
        password, already a member (idempotent, the code is not consumed),
        party capacity. A single-use code is marked used in the same
        transaction that adds the member.

        Args:
            user_id: Joining user
            code: Everyone or single-use code
            password: Party password, if the party has one
            party_id: Expected party; a code from another party is rejected

        Returns:
            JoinResult with ``already_member`` set for repeat joins
        """
        normalized = self.codes.normalize(code)
        entry = self.repository.get_code(normalized)
        if entry is None or (party_id is not None and entry.party_id != party_id):
            raise CodeNotFoundError()

        def _admit(state: PartyState) -> JoinResult:
            redemption = self.codes.redeem(state, normalized, user_id, password)
            party = state.party

            existing = state.member(user_id)
            if existing is not None:
                return JoinResult(party=party, member=existing, already_member=True)

            if not access_control.party_has_room(party.settings, len(state.members)):
                raise PartyFullError()

            member = Member(party_id=party.id, user_id=user_id, joined_at=utc_now_iso())
            state.members.append(member)
            if redemption.kind == CodeKind.SINGLE_USE:
                self.codes.consume(state, normalized)
            return JoinResult(party=party, member=member)

        with LogContext(logger, "join_party", party_id=entry.party_id, user_id=user_id):
            return self.repository.run_in_transaction(entry.party_id, _admit)

    def list_members(self, party_id: str) -> list[Member]:
        return self.repository.list_members(party_id)

    # =========================================================================
    # Teams
    # =========================================================================

    def create_team(
        self,
        party_id: str,
        acting_user_id: str,
        name: str,
        description: str = "",
        color: str = DEFAULT_TEAM_COLOR,
        is_private: bool = False,
        max_members: int = 0,
        auto_join: bool = True,
    ) -> Team:
        """
        Create a team inside a party.

        With ``auto_join`` the creator joins immediately and their personal
        team limits apply exactly as for ``join_team``. Without it nobody
        joins, so the creator's limits are not consulted.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Team name is required")
        if max_members < 0:
            raise ValidationError("max_members cannot be negative")

        team_id = str(uuid4())

        def _create(state: PartyState) -> Team:
            party = state.party
            if party is None:
                raise PartyNotFoundError(party_id)

            member = state.member(acting_user_id)
            if member is None:
                raise NotAMemberError(acting_user_id)
            if not access_control.can_create_team(party, member):
                raise UnauthorizedError("Not authorized to create teams")
            if auto_join:
                _enforce_team_limits(party.settings, member)

            team = Team(
                id=team_id,
                party_id=party_id,
                name=name,
                description=description or "",
                color=color or DEFAULT_TEAM_COLOR,
                is_private=is_private,
                max_members=max_members,
                creator_id=acting_user_id,
                member_ids=[acting_user_id] if auto_join else [],
                created_at=utc_now_iso(),
            )
            state.teams.append(team)
            if auto_join:
                member.team_ids.append(team_id)
            state.new_channels.append(team_id)
            return team

        with LogContext(logger, "create_team", party_id=party_id, user_id=acting_user_id, team_id=team_id):
            return self.repository.run_in_transaction(party_id, _create)

    def join_team(self, party_id: str, team_id: str, user_id: str) -> TeamJoinResult:
        """
        Join an open team.

        Repeat joins succeed with ``already_member`` before privacy or
        capacity are consulted, so a client may retry safely.
        """

        def _join(state: PartyState) -> TeamJoinResult:
            party = state.party
            if party is None:
                raise PartyNotFoundError(party_id)

            member = state.member(user_id)
            if member is None:
                raise NotAMemberError(user_id)

            team = state.team(team_id)
            if team is None:
                raise TeamNotFoundError(team_id)

            if access_control.is_team_member(team, user_id):
                return TeamJoinResult(team=team, already_member=True)

            if team.is_private:
                raise PrivateTeamError(team_id)
            if not access_control.team_has_room(team):
                raise TeamFullError(team_id)
            _enforce_team_limits(party.settings, member)

            team.member_ids.append(user_id)
            member.team_ids.append(team_id)
            return TeamJoinResult(team=team)

        with LogContext(logger, "join_team", party_id=party_id, user_id=user_id, team_id=team_id):
            return self.repository.run_in_transaction(party_id, _join)

    def list_teams(self, party_id: str) -> list[Team]:
        return self.repository.list_teams(party_id)
