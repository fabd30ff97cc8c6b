"""
FastAPI dependencies.

The repository is a lazy singleton so importing the app never touches
Firestore (tests override ``get_repo``). Services are stateless wrappers
built per request around it.
"""

from typing import Optional

from fastapi import Depends

from walkytalky.core.config import get_storage_backend
from walkytalky.core.logging import get_logger
from walkytalky.repositories.base import PartyRepository
from walkytalky.services.chat_log import ChatLog
from walkytalky.services.code_registry import CodeRegistry
from walkytalky.services.membership import MembershipManager
from walkytalky.services.party_store import PartyStore
from walkytalky.services.profile_service import ProfileService

logger = get_logger("walkytalky.deps")

_repo: Optional[PartyRepository] = None


def get_repo() -> PartyRepository:
    """Get the singleton repository for the configured storage backend."""
    global _repo
    if _repo is None:
        backend = get_storage_backend()
        if backend == "firestore":
            from walkytalky.repositories.firestore_repo import FirestoreRepository

            _repo = FirestoreRepository()
        else:
            from walkytalky.repositories.local_repo import LocalRepository

            _repo = LocalRepository()
        logger.info(f"Using {backend} storage backend")
    return _repo


def get_code_registry() -> CodeRegistry:
    return CodeRegistry()


def get_party_store(
    repo: PartyRepository = Depends(get_repo),
    codes: CodeRegistry = Depends(get_code_registry),
) -> PartyStore:
    return PartyStore(repo, codes)


def get_membership(
    repo: PartyRepository = Depends(get_repo),
    codes: CodeRegistry = Depends(get_code_registry),
) -> MembershipManager:
    return MembershipManager(repo, codes)


def get_chat_log(repo: PartyRepository = Depends(get_repo)) -> ChatLog:
    return ChatLog(repo)


def get_profile_service(repo: PartyRepository = Depends(get_repo)) -> ProfileService:
    return ProfileService(repo)
