"""Pytest fixtures and configuration."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Set environment variables before importing app modules
os.environ["STORAGE_BACKEND"] = "local"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from walkytalky.repositories.local_repo import LocalRepository  # noqa: E402
from walkytalky.schemas.models import Member, Party  # noqa: E402
from walkytalky.services.chat_log import ChatLog  # noqa: E402
from walkytalky.services.code_registry import CodeRegistry  # noqa: E402
from walkytalky.services.membership import MembershipManager  # noqa: E402
from walkytalky.services.party_store import PartyStore  # noqa: E402


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def repo(temp_data_dir: Path) -> LocalRepository:
    return LocalRepository(base_dir=temp_data_dir)


@pytest.fixture
def codes() -> CodeRegistry:
    return CodeRegistry()


@pytest.fixture
def party_store(repo: LocalRepository, codes: CodeRegistry) -> PartyStore:
    return PartyStore(repo, codes)


@pytest.fixture
def membership(repo: LocalRepository, codes: CodeRegistry) -> MembershipManager:
    return MembershipManager(repo, codes)


@pytest.fixture
def chat(repo: LocalRepository) -> ChatLog:
    return ChatLog(repo)


@pytest.fixture
def party(party_store: PartyStore) -> Party:
    """A default party owned by ``owner``."""
    return party_store.create(owner_user_id="owner", name="Test Party", description="Fixture party")


@pytest.fixture
def add_member(membership: MembershipManager):
    """Join a user to a party through its everyone code."""

    def _add(party: Party, user_id: str) -> Member:
        return membership.join(user_id=user_id, code=party.everyone_code).member

    return _add


@pytest.fixture
def client(repo: LocalRepository) -> Generator[TestClient, None, None]:
    """Test client wired to a temp-dir local repository."""
    from walkytalky.main import app
    from walkytalky.services.deps import get_repo

    app.dependency_overrides[get_repo] = lambda: repo

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_repo, None)
