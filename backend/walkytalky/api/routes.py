from fastapi import APIRouter, Depends

from walkytalky.schemas.party_models import ProfileResponse, ProfileUpdate
from walkytalky.services.deps import get_profile_service
from walkytalky.services.profile_service import ProfileService

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# =============================================================================
# User Profiles
# =============================================================================


@router.get("/users/{user_id}", response_model=ProfileResponse)
def get_user(
    user_id: str,
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Get a user's display profile. Unknown users return ``user: null``."""
    return ProfileResponse(user=profiles.get(user_id))


@router.post("/users/{user_id}", response_model=ProfileResponse)
def save_user(
    user_id: str,
    payload: ProfileUpdate,
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Create or replace a user's display profile."""
    profile = profiles.save(
        user_id=user_id,
        username=payload.username,
        color=payload.color,
        profile_picture=payload.profile_picture,
    )
    return ProfileResponse(user=profile)
