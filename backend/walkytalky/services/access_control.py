"""
Access Control

Pure predicates over party records. Nothing here reads storage; callers pass
in the records they already hold inside a transaction.
"""

from __future__ import annotations

from typing import Iterable, Optional

from walkytalky.schemas.models import MediaKind, Member, Party, PartySettings, Team


def is_admin(party: Party, user_id: str) -> bool:
    return user_id in party.admin_ids


def is_member(members: Iterable[Member], user_id: str) -> bool:
    return any(m.user_id == user_id for m in members)


def is_team_member(team: Optional[Team], user_id: str) -> bool:
    return team is not None and user_id in team.member_ids


def can_create_team(party: Party, member: Optional[Member]) -> bool:
    """Members may create teams when the party allows it; admins always may."""
    if member is None:
        return False
    return party.settings.members_can_create_teams or is_admin(party, member.user_id)


def can_see_join_codes(party: Party, members: Iterable[Member], user_id: Optional[str]) -> bool:
    if user_id is None:
        return False
    if is_admin(party, user_id):
        return True
    return party.settings.members_can_see_join_codes and is_member(members, user_id)


def can_share_media(settings: PartySettings, media_kind: Optional[MediaKind]) -> bool:
    if media_kind == MediaKind.IMAGE:
        return settings.image_share_enabled
    if media_kind == MediaKind.AUDIO:
        return settings.voice_chat_enabled
    return True


def party_has_room(settings: PartySettings, member_count: int) -> bool:
    return settings.max_members <= 0 or member_count < settings.max_members


def team_has_room(team: Team) -> bool:
    return team.max_members <= 0 or len(team.member_ids) < team.max_members


def multiple_teams_blocked(settings: PartySettings, member: Member) -> bool:
    """True when single-team mode is on and the member already has a team."""
    return not settings.allow_multiple_teams and len(member.team_ids) > 0


def team_limit_reached(settings: PartySettings, member: Member) -> bool:
    return settings.max_teams_per_user > 0 and len(member.team_ids) >= settings.max_teams_per_user
