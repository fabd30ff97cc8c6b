"""
Party API Models

Pydantic request/response models for parties, codes, admins, teams and
messages. Requests are validated here, before anything reaches the services.
"""

from typing import Optional

from pydantic import BaseModel, Field

from walkytalky.schemas.models import (
    MediaKind,
    Member,
    Message,
    Party,
    PartySettings,
    SettingsPatch,
    SingleUseCode,
    Team,
    UserProfile,
)

# =============================================================================
# Request Models
# =============================================================================


class PartyCreate(BaseModel):
    """Request model for creating a party."""

    owner_user_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=100, description="Party name")
    description: str = Field(default="", max_length=2000)
    banner: Optional[str] = Field(default=None, max_length=2048)
    settings: Optional[SettingsPatch] = None
    password: Optional[str] = Field(default=None, max_length=128)


class JoinPartyRequest(BaseModel):
    """Request model for joining a party with a join code."""

    user_id: str = Field(..., min_length=1, max_length=128)
    code: str = Field(..., min_length=1, max_length=32, description="Everyone or single-use code")
    password: Optional[str] = Field(default=None, max_length=128)


class ActingUserRequest(BaseModel):
    acting_user_id: str = Field(..., min_length=1, max_length=128)


class UpdateSettingsRequest(ActingUserRequest):
    settings: SettingsPatch


class UpdatePasswordRequest(ActingUserRequest):
    password: Optional[str] = Field(default=None, max_length=128, description="None clears the password")


class AddAdminRequest(ActingUserRequest):
    target_user_id: str = Field(..., min_length=1, max_length=128)


class TeamCreate(ActingUserRequest):
    """Request model for creating a team."""

    name: str = Field(..., min_length=1, max_length=100, description="Team name")
    description: str = Field(default="", max_length=2000)
    color: str = Field(default="#3b82f6", max_length=32)
    is_private: bool = False
    max_members: int = Field(default=0, ge=0, description="0 = unlimited")
    auto_join: bool = Field(default=True, description="Creator joins the team immediately")


class JoinTeamRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)


class MessageCreate(BaseModel):
    sender_user_id: str = Field(..., min_length=1, max_length=128)
    text: str = Field(default="", max_length=4000)
    media_ref: Optional[str] = Field(default=None, max_length=2048)
    media_kind: Optional[MediaKind] = None


class ProfileUpdate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, max_length=32)
    profile_picture: Optional[str] = Field(default=None, max_length=2048)


# =============================================================================
# Response Models
# =============================================================================


class PartyResponse(BaseModel):
    """Party as shown to clients. The password is never included."""

    id: str
    name: str
    description: str
    banner: Optional[str] = None
    settings: PartySettings
    admin_ids: list[str]
    has_password: bool
    created_at: str
    everyone_code: Optional[str] = None
    single_use_codes: Optional[list[SingleUseCode]] = None

    @classmethod
    def from_party(cls, party: Party, include_codes: bool) -> "PartyResponse":
        return cls(
            id=party.id,
            name=party.name,
            description=party.description,
            banner=party.banner,
            settings=party.settings,
            admin_ids=list(party.admin_ids),
            has_password=party.has_password,
            created_at=party.created_at,
            everyone_code=party.everyone_code if include_codes else None,
            single_use_codes=list(party.single_use_codes) if include_codes else None,
        )


class PartyCreatedResponse(BaseModel):
    success: bool = True
    party_id: str
    party: PartyResponse


class JoinPartyResponse(BaseModel):
    success: bool = True
    party_id: str
    party: PartyResponse
    already_member: bool = False


class PartyDetailResponse(BaseModel):
    success: bool = True
    party: PartyResponse
    members: list[Member]
    teams: list[Team]


class PartyMutationResponse(BaseModel):
    success: bool = True
    party: PartyResponse


class TeamResponse(BaseModel):
    success: bool = True
    team: Team


class TeamListResponse(BaseModel):
    success: bool = True
    teams: list[Team]


class JoinTeamResponse(BaseModel):
    success: bool = True
    already_member: bool = False


class MessageResponse(BaseModel):
    success: bool = True
    message: Message


class MessageListResponse(BaseModel):
    success: bool = True
    messages: list[Message]


class ProfileResponse(BaseModel):
    success: bool = True
    user: Optional[UserProfile] = None
