"""Display profiles keyed by the caller-supplied user ID."""

from __future__ import annotations

from typing import Optional

from walkytalky.core.exceptions import ValidationError
from walkytalky.core.logging import get_logger
from walkytalky.core.utils import utc_now_iso
from walkytalky.repositories.base import PartyRepository
from walkytalky.schemas.models import UserProfile

logger = get_logger("walkytalky.services.profile")


class ProfileService:
    def __init__(self, repository: PartyRepository) -> None:
        self.repository = repository

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self.repository.get_profile(user_id)

    def save(
        self,
        user_id: str,
        username: str,
        color: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> UserProfile:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")

        profile = UserProfile(
            user_id=user_id,
            username=username,
            color=color,
            profile_picture=profile_picture,
            updated_at=utc_now_iso(),
        )
        logger.info(f"Saving profile for user {user_id}")
        return self.repository.save_profile(profile)
