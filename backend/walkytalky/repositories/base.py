"""
Repository Contract

Both storage backends expose the same duck-typed interface. All party-scoped
mutations go through ``run_in_transaction``: the backend loads a
``PartyState`` working copy, hands it to the caller's function, and persists
the result only if the function returns normally. Raising from the function
discards every change, code index writes included.

Durable keys:
    party/{party_id}                    - Party record
    members/{party_id}                  - Member list
    teams/{party_id}                    - Team list
    messages/{party_id}/{channel_id}    - Ordered message sequence
    codes/{code}                        - Global join code index
    profiles/{user_id}                  - User display profile
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Protocol, TypeVar

from walkytalky.schemas.models import JoinCode, Member, Message, Party, Team, UserProfile

T = TypeVar("T")


class TransactionConflict(Exception):
    """A concurrent writer invalidated the working copy; the transaction is re-run."""


@dataclass
class PartyState:
    """Mutable working copy of one party's aggregate inside a transaction."""

    party_id: str
    party: Optional[Party]
    members: list[Member]
    teams: list[Team]
    code_reader: Callable[[str], Optional[JoinCode]]
    code_writes: dict[str, Optional[JoinCode]] = field(default_factory=dict)
    issued_codes: set[str] = field(default_factory=set)
    new_channels: list[str] = field(default_factory=list)

    def member(self, user_id: str) -> Optional[Member]:
        return next((m for m in self.members if m.user_id == user_id), None)

    def team(self, team_id: str) -> Optional[Team]:
        return next((t for t in self.teams if t.id == team_id), None)

    def get_code(self, code: str) -> Optional[JoinCode]:
        """Read a code, seeing this transaction's own pending writes first."""
        if code in self.code_writes:
            return self.code_writes[code]
        return self.code_reader(code)

    def add_code(self, join_code: JoinCode) -> None:
        """Register a freshly issued code. Backends re-check it is still free at commit."""
        self.issued_codes.add(join_code.code)
        self.code_writes[join_code.code] = join_code

    def put_code(self, join_code: JoinCode) -> None:
        self.code_writes[join_code.code] = join_code

    def delete_code(self, code: str) -> None:
        self.code_writes[code] = None


class PartyRepository(Protocol):
    def get_party(self, party_id: str) -> Optional[Party]: ...

    def list_members(self, party_id: str) -> list[Member]: ...

    def list_teams(self, party_id: str) -> list[Team]: ...

    def get_code(self, code: str) -> Optional[JoinCode]: ...

    def run_in_transaction(
        self,
        party_id: str,
        fn: Callable[[PartyState], T],
        create: bool = False,
    ) -> T: ...

    def delete_party(
        self,
        party_id: str,
        authorize: Optional[Callable[[Optional[Party]], None]] = None,
    ) -> None: ...

    def append_message(
        self,
        party_id: str,
        channel_id: str,
        build: Callable[[int], Message],
    ) -> Message: ...

    def iter_messages(
        self,
        party_id: str,
        channel_id: str,
        after: Optional[int] = None,
    ) -> Iterator[Message]: ...

    def get_profile(self, user_id: str) -> Optional[UserProfile]: ...

    def save_profile(self, profile: UserProfile) -> UserProfile: ...
