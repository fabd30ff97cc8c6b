"""
Local Repository

JSON-file repository for development and tests. Party transactions are
serialized by a per-party lock; message appends by a per-channel lock. Newly
issued join codes are re-checked against the global index under a
process-wide lock at commit time, and the transaction is re-run if another
party claimed the same code in the meantime. A commit stages every file
before swapping any of them in and rolls back on a write error.

Layout (under DATA_DIR):
    parties/{party_id}.json
    members/{party_id}.json
    teams/{party_id}.json
    messages/{party_id}/{channel_id}.json
    codes/{code}.json
    profiles/{user_id}.json
"""

import json
import os
import re
import shutil
import threading
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar
from uuid import uuid4

from walkytalky.core.config import TRANSACTION_MAX_ATTEMPTS, get_data_dir
from walkytalky.core.exceptions import StorageError, ValidationError
from walkytalky.core.logging import get_logger
from walkytalky.repositories.base import PartyState, TransactionConflict
from walkytalky.schemas.models import JoinCode, Member, Message, Party, Team, UserProfile

logger = get_logger("walkytalky.repositories.local")

T = TypeVar("T")

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class _KeyedLocks:
    """Lazily created lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class LocalRepository:
    def __init__(
        self,
        base_dir: Path | None = None,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> None:
        self.data_dir = base_dir or get_data_dir()
        self.party_dir = self.data_dir / "parties"
        self.member_dir = self.data_dir / "members"
        self.team_dir = self.data_dir / "teams"
        self.message_dir = self.data_dir / "messages"
        self.code_dir = self.data_dir / "codes"
        self.profile_dir = self.data_dir / "profiles"
        for directory in (
            self.party_dir,
            self.member_dir,
            self.team_dir,
            self.message_dir,
            self.code_dir,
            self.profile_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

        self.max_attempts = max_attempts
        self._party_locks = _KeyedLocks()
        self._channel_locks = _KeyedLocks()
        self._code_lock = threading.Lock()

    # =========================================================================
    # File helpers
    # =========================================================================

    @staticmethod
    def _path(directory: Path, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValidationError("Invalid identifier", {"id": key})
        return directory / f"{key}.json"

    @staticmethod
    def _read(path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path.name}") from e

    @staticmethod
    def _write(path: Path, payload: Any) -> None:
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    def _message_path(self, party_id: str, channel_id: str) -> Path:
        party_messages = self.message_dir / self._path(self.message_dir, party_id).stem
        return self._path(party_messages, channel_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_party(self, party_id: str) -> Optional[Party]:
        data = self._read(self._path(self.party_dir, party_id))
        return Party.model_validate(data) if data else None

    def list_members(self, party_id: str) -> list[Member]:
        data = self._read(self._path(self.member_dir, party_id)) or []
        return [Member.model_validate(m) for m in data]

    def list_teams(self, party_id: str) -> list[Team]:
        data = self._read(self._path(self.team_dir, party_id)) or []
        return [Team.model_validate(t) for t in data]

    def get_code(self, code: str) -> Optional[JoinCode]:
        data = self._read(self._path(self.code_dir, code))
        return JoinCode.model_validate(data) if data else None

    # =========================================================================
    # Party transactions
    # =========================================================================

    def run_in_transaction(
        self,
        party_id: str,
        fn: Callable[[PartyState], T],
        create: bool = False,
    ) -> T:
        """
        Run ``fn`` against a fresh working copy of the party and commit its changes.

        Args:
            party_id: Party whose aggregate is locked for the duration
            fn: Mutates the state and returns the caller's result
            create: The party must not exist yet

        Returns:
            Whatever ``fn`` returned
        """
        with self._party_locks.get(party_id):
            for attempt in range(1, self.max_attempts + 1):
                state = self._load_state(party_id)
                if create and state.party is not None:
                    raise StorageError("Party already exists", {"party_id": party_id})

                result = fn(state)

                try:
                    self._commit(state)
                except TransactionConflict as e:
                    logger.warning(f"Code collision on {e}, retrying party {party_id} (attempt {attempt})")
                    continue
                return result

        raise StorageError(
            "Transaction aborted after repeated conflicts",
            {"party_id": party_id, "attempts": self.max_attempts},
        )

    def _load_state(self, party_id: str) -> PartyState:
        return PartyState(
            party_id=party_id,
            party=self.get_party(party_id),
            members=self.list_members(party_id),
            teams=self.list_teams(party_id),
            code_reader=self.get_code,
        )

    def _commit(self, state: PartyState) -> None:
        with self._code_lock:
            for code in state.issued_codes:
                if self._path(self.code_dir, code).exists():
                    raise TransactionConflict(code)

            writes: list[tuple[Path, Any]] = []
            for code, entry in state.code_writes.items():
                payload = entry.model_dump(mode="json") if entry is not None else None
                writes.append((self._path(self.code_dir, code), payload))

            if state.party is not None:
                writes.append((self._path(self.party_dir, state.party_id), state.party.model_dump(mode="json")))
                writes.append(
                    (
                        self._path(self.member_dir, state.party_id),
                        [m.model_dump(mode="json") for m in state.members],
                    )
                )
                writes.append(
                    (
                        self._path(self.team_dir, state.party_id),
                        [t.model_dump(mode="json") for t in state.teams],
                    )
                )

            for channel_id in state.new_channels:
                path = self._message_path(state.party_id, channel_id)
                if not path.exists():
                    writes.append((path, []))

            try:
                self._apply(writes)
            except OSError as e:
                raise StorageError(f"Failed to commit party {state.party_id}") from e

    def _apply(self, writes: list[tuple[Path, Any]]) -> None:
        """
        Apply a batch of file writes (``None`` payload = delete) all or nothing.

        Every payload is written to a pending file before any target is
        touched. If staging or swapping fails, targets already swapped get
        their prior bytes back and pending files are removed.
        """
        backups = {path: path.read_bytes() if path.exists() else None for path, _ in writes}
        pending: dict[Path, Path] = {}
        applied: list[Path] = []
        try:
            for path, payload in writes:
                if payload is None:
                    continue
                path.parent.mkdir(parents=True, exist_ok=True)
                staged = path.with_name(f"{path.name}.{uuid4().hex}.pending")
                self._write(staged, payload)
                pending[path] = staged

            for path, payload in writes:
                if payload is None:
                    path.unlink(missing_ok=True)
                else:
                    os.replace(pending[path], path)
                    del pending[path]
                applied.append(path)
        except OSError:
            for path in reversed(applied):
                self._restore(path, backups[path])
            for staged in pending.values():
                staged.unlink(missing_ok=True)
            raise

    def _restore(self, path: Path, previous: bytes | None) -> None:
        try:
            if previous is None:
                path.unlink(missing_ok=True)
            else:
                tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
                tmp_path.write_bytes(previous)
                os.replace(tmp_path, path)
        except OSError:
            logger.error(f"Failed to roll back {path}", exc_info=True)

    def delete_party(
        self,
        party_id: str,
        authorize: Optional[Callable[[Optional[Party]], None]] = None,
    ) -> None:
        """
        Delete a party and every record scoped to it, join codes included.

        ``authorize`` sees the party as loaded under the party lock and may
        raise to abort before anything is removed.
        """
        with self._party_locks.get(party_id):
            party = self.get_party(party_id)
            if authorize is not None:
                authorize(party)
            if party is None:
                return

            with self._code_lock:
                try:
                    codes = [party.everyone_code] + [c.code for c in party.single_use_codes]
                    for code in codes:
                        self._path(self.code_dir, code).unlink(missing_ok=True)

                    self._path(self.member_dir, party_id).unlink(missing_ok=True)
                    self._path(self.team_dir, party_id).unlink(missing_ok=True)
                    shutil.rmtree(self.message_dir / party_id, ignore_errors=True)
                    self._path(self.party_dir, party_id).unlink(missing_ok=True)
                except OSError as e:
                    raise StorageError(f"Failed to delete party {party_id}") from e

    # =========================================================================
    # Messages
    # =========================================================================

    def append_message(
        self,
        party_id: str,
        channel_id: str,
        build: Callable[[int], Message],
    ) -> Message:
        """Append under the channel lock; ``build`` receives the next position."""
        path = self._message_path(party_id, channel_id)
        with self._channel_locks.get(f"{party_id}:{channel_id}"):
            messages = self._read(path) or []
            position = messages[-1]["position"] + 1 if messages else 1
            message = build(position)
            messages.append(message.model_dump(mode="json"))
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._write(path, messages)
            except OSError as e:
                raise StorageError(f"Failed to append to channel {channel_id}") from e
            return message

    def iter_messages(
        self,
        party_id: str,
        channel_id: str,
        after: Optional[int] = None,
    ) -> Iterator[Message]:
        """Yield messages in append order. Each call re-reads the channel."""
        path = self._message_path(party_id, channel_id)
        for data in self._read(path) or []:
            if after is not None and data["position"] <= after:
                continue
            yield Message.model_validate(data)

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        data = self._read(self._path(self.profile_dir, user_id))
        return UserProfile.model_validate(data) if data else None

    def save_profile(self, profile: UserProfile) -> UserProfile:
        try:
            self._write(self._path(self.profile_dir, profile.user_id), profile.model_dump(mode="json"))
        except OSError as e:
            raise StorageError(f"Failed to save profile {profile.user_id}") from e
        return profile
