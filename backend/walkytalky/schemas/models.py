"""
Party Domain Models

Typed records persisted by the repositories. Every record round-trips
through ``model_dump(mode="json")`` / ``model_validate``.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

EVERYONE_CHANNEL = "everyone"


class CodeKind(str, Enum):
    """Join code kinds."""

    EVERYONE = "everyone"
    SINGLE_USE = "single-use"


class MediaKind(str, Enum):
    """Kinds of media a message can reference."""

    IMAGE = "image"
    AUDIO = "audio"


# =============================================================================
# Settings
# =============================================================================


class PartySettings(BaseModel):
    """Party-wide switches consulted by access control."""

    members_can_see_join_codes: bool = False
    allow_multiple_teams: bool = True
    max_teams_per_user: int = Field(default=3, ge=1)
    members_can_create_teams: bool = True
    max_members: int = Field(default=0, ge=0, description="0 = unlimited")
    voice_chat_enabled: bool = True
    image_share_enabled: bool = True


class SettingsPatch(BaseModel):
    """Partial settings update. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    members_can_see_join_codes: Optional[bool] = None
    allow_multiple_teams: Optional[bool] = None
    max_teams_per_user: Optional[int] = Field(default=None, ge=1)
    members_can_create_teams: Optional[bool] = None
    max_members: Optional[int] = Field(default=None, ge=0)
    voice_chat_enabled: Optional[bool] = None
    image_share_enabled: Optional[bool] = None

    def apply_to(self, settings: PartySettings) -> PartySettings:
        """Merge this patch field by field; unset fields keep their prior value."""
        merged = settings.model_dump()
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if value is not None:
                merged[field_name] = value
        return PartySettings(**merged)


# =============================================================================
# Records
# =============================================================================


class SingleUseCode(BaseModel):
    code: str
    used: bool = False


class JoinCode(BaseModel):
    """Entry in the global code index."""

    code: str
    party_id: str
    kind: CodeKind
    used: bool = False


class Party(BaseModel):
    id: str
    name: str
    description: str = ""
    banner: Optional[str] = None
    password_hash: Optional[str] = None
    settings: PartySettings = Field(default_factory=PartySettings)
    admin_ids: list[str]
    everyone_code: str
    single_use_codes: list[SingleUseCode] = []
    created_at: str

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None


class Member(BaseModel):
    party_id: str
    user_id: str
    joined_at: str
    team_ids: list[str] = []


class Team(BaseModel):
    id: str
    party_id: str
    name: str
    description: str = ""
    color: str
    is_private: bool = False
    max_members: int = 0
    creator_id: str
    member_ids: list[str] = []
    created_at: str


class Message(BaseModel):
    id: str
    party_id: str
    channel_id: str
    position: int
    sender_id: str
    text: str = ""
    media_ref: Optional[str] = None
    media_kind: Optional[MediaKind] = None
    timestamp: str


class UserProfile(BaseModel):
    user_id: str
    username: str
    color: Optional[str] = None
    profile_picture: Optional[str] = None
    updated_at: str
