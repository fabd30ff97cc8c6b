"""
Party API Routes

API endpoints for parties, join codes, admins, teams and channel messages.
Domain errors raised by the services are rendered by the application-wide
``WalkyTalkyError`` handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from walkytalky.schemas.models import Member, Party
from walkytalky.schemas.party_models import (
    ActingUserRequest,
    AddAdminRequest,
    JoinPartyRequest,
    JoinPartyResponse,
    JoinTeamRequest,
    JoinTeamResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    PartyCreate,
    PartyCreatedResponse,
    PartyDetailResponse,
    PartyMutationResponse,
    PartyResponse,
    TeamCreate,
    TeamListResponse,
    TeamResponse,
    UpdatePasswordRequest,
    UpdateSettingsRequest,
)
from walkytalky.services import access_control
from walkytalky.services.chat_log import ChatLog
from walkytalky.services.deps import get_chat_log, get_membership, get_party_store
from walkytalky.services.membership import MembershipManager
from walkytalky.services.party_store import PartyStore

router = APIRouter(prefix="/parties", tags=["parties"])


def _party_view(party: Party, members: list[Member], viewer_id: Optional[str]) -> PartyResponse:
    """Render a party, including join codes only for viewers allowed to see them."""
    include_codes = access_control.can_see_join_codes(party, members, viewer_id)
    return PartyResponse.from_party(party, include_codes=include_codes)


def _admin_view(party: Party) -> PartyResponse:
    """Admin-only endpoints always return the codes."""
    return PartyResponse.from_party(party, include_codes=True)


# =============================================================================
# Party Management
# =============================================================================


@router.post("", response_model=PartyCreatedResponse)
def create_party(
    payload: PartyCreate,
    store: PartyStore = Depends(get_party_store),
) -> PartyCreatedResponse:
    """Create a new party. The creator becomes its first member and admin."""
    party = store.create(
        owner_user_id=payload.owner_user_id,
        name=payload.name,
        description=payload.description,
        banner=payload.banner,
        settings=payload.settings,
        password=payload.password,
    )
    return PartyCreatedResponse(party_id=party.id, party=_admin_view(party))


@router.post("/join", response_model=JoinPartyResponse)
def join_party(
    payload: JoinPartyRequest,
    membership: MembershipManager = Depends(get_membership),
) -> JoinPartyResponse:
    """Join a party with an everyone or single-use code."""
    result = membership.join(
        user_id=payload.user_id,
        code=payload.code,
        password=payload.password,
    )
    members = membership.list_members(result.party.id)
    return JoinPartyResponse(
        party_id=result.party.id,
        party=_party_view(result.party, members, payload.user_id),
        already_member=result.already_member,
    )


@router.get("/{party_id}", response_model=PartyDetailResponse)
def get_party(
    party_id: str,
    user_id: Optional[str] = Query(default=None, description="Viewer; decides whether codes are shown"),
    store: PartyStore = Depends(get_party_store),
) -> PartyDetailResponse:
    """Get a party with its members and teams."""
    overview = store.get_overview(party_id)
    return PartyDetailResponse(
        party=_party_view(overview.party, overview.members, user_id),
        members=overview.members,
        teams=overview.teams,
    )


@router.delete("/{party_id}")
def delete_party(
    party_id: str,
    acting_user_id: str = Query(..., min_length=1),
    store: PartyStore = Depends(get_party_store),
) -> dict:
    """Delete a party with all its members, teams, messages and codes. Requires admin."""
    store.delete(party_id, acting_user_id)
    return {"success": True, "status": "deleted", "party_id": party_id}


@router.put("/{party_id}/settings", response_model=PartyMutationResponse)
def update_settings(
    party_id: str,
    payload: UpdateSettingsRequest,
    store: PartyStore = Depends(get_party_store),
) -> PartyMutationResponse:
    """Merge a settings patch. Requires admin."""
    party = store.update_settings(party_id, payload.acting_user_id, payload.settings)
    return PartyMutationResponse(party=_admin_view(party))


@router.put("/{party_id}/password", response_model=PartyMutationResponse)
def update_password(
    party_id: str,
    payload: UpdatePasswordRequest,
    store: PartyStore = Depends(get_party_store),
) -> PartyMutationResponse:
    """Set or clear the join password. Requires admin."""
    party = store.update_password(party_id, payload.acting_user_id, payload.password)
    return PartyMutationResponse(party=_admin_view(party))


@router.post("/{party_id}/codes/regenerate", response_model=PartyMutationResponse)
def regenerate_codes(
    party_id: str,
    payload: ActingUserRequest,
    store: PartyStore = Depends(get_party_store),
) -> PartyMutationResponse:
    """Replace every single-use code. Requires admin."""
    party = store.regenerate_codes(party_id, payload.acting_user_id)
    return PartyMutationResponse(party=_admin_view(party))


# =============================================================================
# Admin Management
# =============================================================================


@router.post("/{party_id}/admins", response_model=PartyMutationResponse)
def add_admin(
    party_id: str,
    payload: AddAdminRequest,
    store: PartyStore = Depends(get_party_store),
) -> PartyMutationResponse:
    """Promote a member to admin. Requires admin."""
    party = store.add_admin(party_id, payload.acting_user_id, payload.target_user_id)
    return PartyMutationResponse(party=_admin_view(party))


@router.delete("/{party_id}/admins/{target_user_id}", response_model=PartyMutationResponse)
def remove_admin(
    party_id: str,
    target_user_id: str,
    acting_user_id: str = Query(..., min_length=1),
    store: PartyStore = Depends(get_party_store),
) -> PartyMutationResponse:
    """Demote an admin. The last admin cannot be removed."""
    party = store.remove_admin(party_id, acting_user_id, target_user_id)
    return PartyMutationResponse(party=_admin_view(party))


# =============================================================================
# Teams
# =============================================================================


@router.post("/{party_id}/teams", response_model=TeamResponse)
def create_team(
    party_id: str,
    payload: TeamCreate,
    membership: MembershipManager = Depends(get_membership),
) -> TeamResponse:
    """Create a team. Members may do so unless the party restricts it to admins."""
    team = membership.create_team(
        party_id=party_id,
        acting_user_id=payload.acting_user_id,
        name=payload.name,
        description=payload.description,
        color=payload.color,
        is_private=payload.is_private,
        max_members=payload.max_members,
        auto_join=payload.auto_join,
    )
    return TeamResponse(team=team)


@router.get("/{party_id}/teams", response_model=TeamListResponse)
def list_teams(
    party_id: str,
    store: PartyStore = Depends(get_party_store),
    membership: MembershipManager = Depends(get_membership),
) -> TeamListResponse:
    store.get(party_id)
    return TeamListResponse(teams=membership.list_teams(party_id))


@router.post("/{party_id}/teams/{team_id}/join", response_model=JoinTeamResponse)
def join_team(
    party_id: str,
    team_id: str,
    payload: JoinTeamRequest,
    membership: MembershipManager = Depends(get_membership),
) -> JoinTeamResponse:
    """Join an open team. Joining a team twice is a no-op."""
    result = membership.join_team(party_id, team_id, payload.user_id)
    return JoinTeamResponse(already_member=result.already_member)


# =============================================================================
# Messages
# =============================================================================


@router.post("/{party_id}/channels/{channel_id}/messages", response_model=MessageResponse)
def send_message(
    party_id: str,
    channel_id: str,
    payload: MessageCreate,
    chat: ChatLog = Depends(get_chat_log),
) -> MessageResponse:
    """Append a message to the everyone channel or a team channel."""
    message = chat.append(
        party_id=party_id,
        channel_id=channel_id,
        sender_id=payload.sender_user_id,
        text=payload.text,
        media_ref=payload.media_ref,
        media_kind=payload.media_kind,
    )
    return MessageResponse(message=message)


@router.get("/{party_id}/channels/{channel_id}/messages", response_model=MessageListResponse)
def list_messages(
    party_id: str,
    channel_id: str,
    after: Optional[int] = Query(default=None, ge=0, description="Only messages after this position"),
    chat: ChatLog = Depends(get_chat_log),
) -> MessageListResponse:
    """List a channel's messages in the order they were sent."""
    return MessageListResponse(messages=list(chat.list_messages(party_id, channel_id, after=after)))
