"""
Firestore Repository

Repository implementation using Firestore for data persistence. Party
transactions and message appends run inside Firestore transactions, which
retry on contention up to ``TRANSACTION_MAX_ATTEMPTS``.

Data Structure:
    parties/{party_id}                                   - Party record
    parties/{party_id}/channels/{channel_id}             - Channel cursor (next_position)
    parties/{party_id}/channels/{channel_id}/messages/{position:08d}
    party_members/{party_id}                             - {"members": [...]}
    party_teams/{party_id}                               - {"teams": [...]}
    join_codes/{code}                                    - Global join code index
    user_profiles/{user_id}                              - Display profiles
"""

from typing import Any, Callable, Iterator, Optional, TypeVar

import firebase_admin
from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1 import FieldFilter

from walkytalky.core.config import TRANSACTION_MAX_ATTEMPTS
from walkytalky.core.exceptions import StorageError
from walkytalky.core.logging import get_logger
from walkytalky.core.utils import utc_now_iso
from walkytalky.repositories.base import PartyState
from walkytalky.schemas.models import JoinCode, Member, Message, Party, Team, UserProfile

logger = get_logger("walkytalky.repositories.firestore")

T = TypeVar("T")


class FirestoreRepository:
    """Repository using Firestore for data persistence."""

    def __init__(self, max_attempts: int = TRANSACTION_MAX_ATTEMPTS) -> None:
        # Initialize Firebase Admin SDK with Application Default Credentials
        if not firebase_admin._apps:
            firebase_admin.initialize_app()

        self.db = firestore.client()
        self.max_attempts = max_attempts

        # Collection references
        self.parties_collection = "parties"
        self.members_collection = "party_members"
        self.teams_collection = "party_teams"
        self.codes_collection = "join_codes"
        self.profiles_collection = "user_profiles"

    # =========================================================================
    # References
    # =========================================================================

    def _party_ref(self, party_id: str):
        return self.db.collection(self.parties_collection).document(party_id)

    def _members_ref(self, party_id: str):
        return self.db.collection(self.members_collection).document(party_id)

    def _teams_ref(self, party_id: str):
        return self.db.collection(self.teams_collection).document(party_id)

    def _code_ref(self, code: str):
        return self.db.collection(self.codes_collection).document(code)

    def _channel_ref(self, party_id: str, channel_id: str):
        return self._party_ref(party_id).collection("channels").document(channel_id)

    @staticmethod
    def _get(ref, transaction=None) -> Optional[dict[str, Any]]:
        try:
            doc = ref.get(transaction=transaction)
        except gcp_exceptions.GoogleAPICallError as e:
            raise StorageError(f"Failed to read {ref.path}") from e
        if not doc.exists:
            return None
        return doc.to_dict()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_party(self, party_id: str, transaction=None) -> Optional[Party]:
        data = self._get(self._party_ref(party_id), transaction)
        return Party.model_validate(data) if data else None

    def list_members(self, party_id: str, transaction=None) -> list[Member]:
        data = self._get(self._members_ref(party_id), transaction) or {}
        return [Member.model_validate(m) for m in data.get("members", [])]

    def list_teams(self, party_id: str, transaction=None) -> list[Team]:
        data = self._get(self._teams_ref(party_id), transaction) or {}
        return [Team.model_validate(t) for t in data.get("teams", [])]

    def get_code(self, code: str, transaction=None) -> Optional[JoinCode]:
        data = self._get(self._code_ref(code), transaction)
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
        Run ``fn`` inside a Firestore transaction over the party aggregate.

        All reads (party, members, teams, any code lookups ``fn`` makes)
        happen before the staged writes, as Firestore requires.

        Args:
            party_id: Party whose documents are read and written
            fn: Mutates the state and returns the caller's result
            create: The party must not exist yet

        Returns:
            Whatever ``fn`` returned on the attempt that committed
        """
        transaction = self.db.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _run(transaction) -> T:
            state = PartyState(
                party_id=party_id,
                party=self.get_party(party_id, transaction),
                members=self.list_members(party_id, transaction),
                teams=self.list_teams(party_id, transaction),
                code_reader=lambda code: self.get_code(code, transaction),
            )
            if create and state.party is not None:
                raise StorageError("Party already exists", {"party_id": party_id})

            result = fn(state)
            self._stage(transaction, state)
            return result

        try:
            return _run(transaction)
        except gcp_exceptions.GoogleAPICallError as e:
            logger.error(f"Transaction on party {party_id} failed: {e}")
            raise StorageError(f"Failed to commit party {party_id}") from e

    def _stage(self, transaction, state: PartyState) -> None:
        """Stage every write of a finished working copy on the transaction."""
        for code, entry in state.code_writes.items():
            ref = self._code_ref(code)
            if entry is None:
                transaction.delete(ref)
            elif code in state.issued_codes:
                transaction.create(ref, entry.model_dump(mode="json"))
            else:
                transaction.set(ref, entry.model_dump(mode="json"))

        if state.party is not None:
            transaction.set(self._party_ref(state.party_id), state.party.model_dump(mode="json"))
            transaction.set(
                self._members_ref(state.party_id),
                {"party_id": state.party_id, "members": [m.model_dump(mode="json") for m in state.members]},
            )
            transaction.set(
                self._teams_ref(state.party_id),
                {"party_id": state.party_id, "teams": [t.model_dump(mode="json") for t in state.teams]},
            )

        for channel_id in state.new_channels:
            transaction.set(
                self._channel_ref(state.party_id, channel_id),
                {"channel_id": channel_id, "next_position": 1, "created_at": utc_now_iso()},
            )

    def delete_party(
        self,
        party_id: str,
        authorize: Optional[Callable[[Optional[Party]], None]] = None,
    ) -> None:
        """
        Delete a party, its member/team documents, join codes and channels.

        The party record and code index go in one transaction, after
        ``authorize`` has checked the party read inside it; the channel
        sub-collections are unreachable afterwards and are removed recursively.
        """
        transaction = self.db.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _delete(transaction) -> bool:
            party = self.get_party(party_id, transaction)
            if authorize is not None:
                authorize(party)
            if party is None:
                return False
            for code in [party.everyone_code] + [c.code for c in party.single_use_codes]:
                transaction.delete(self._code_ref(code))
            transaction.delete(self._members_ref(party_id))
            transaction.delete(self._teams_ref(party_id))
            transaction.delete(self._party_ref(party_id))
            return True

        try:
            if _delete(transaction):
                self.db.recursive_delete(self._party_ref(party_id).collection("channels"))
        except gcp_exceptions.GoogleAPICallError as e:
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
        """Reserve the channel's next position and write the message atomically."""
        channel_ref = self._channel_ref(party_id, channel_id)
        transaction = self.db.transaction(max_attempts=self.max_attempts)

        @firestore.transactional
        def _append(transaction) -> Message:
            cursor = self._get(channel_ref, transaction) or {}
            position = cursor.get("next_position", 1)
            message = build(position)
            transaction.set(
                channel_ref,
                {"channel_id": channel_id, "next_position": position + 1},
                merge=True,
            )
            transaction.set(
                channel_ref.collection("messages").document(f"{position:08d}"),
                message.model_dump(mode="json"),
            )
            return message

        try:
            return _append(transaction)
        except gcp_exceptions.GoogleAPICallError as e:
            raise StorageError(f"Failed to append to channel {channel_id}") from e

    def iter_messages(
        self,
        party_id: str,
        channel_id: str,
        after: Optional[int] = None,
    ) -> Iterator[Message]:
        """Stream messages ordered by position. Each call issues a fresh query."""
        query = self._channel_ref(party_id, channel_id).collection("messages")
        if after is not None:
            query = query.where(filter=FieldFilter("position", ">", after))
        for doc in query.order_by("position").stream():
            yield Message.model_validate(doc.to_dict())

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        data = self._get(self.db.collection(self.profiles_collection).document(user_id))
        return UserProfile.model_validate(data) if data else None

    def save_profile(self, profile: UserProfile) -> UserProfile:
        try:
            self.db.collection(self.profiles_collection).document(profile.user_id).set(
                profile.model_dump(mode="json")
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise StorageError(f"Failed to save profile {profile.user_id}") from e
        return profile
