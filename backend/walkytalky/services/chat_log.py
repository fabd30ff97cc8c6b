"""
Chat Log

Append-only ordered message sequences, one per channel: the party-wide
"everyone" channel and one channel per team. Appends are serialized per
channel by the repository; party-level transactions are not involved.
"""

from __future__ import annotations

import threading
from typing import Iterator, Optional
from uuid import uuid4

from walkytalky.core.exceptions import (
    MediaDisabledError,
    NotAMemberError,
    NotATeamMemberError,
    PartyNotFoundError,
    ValidationError,
)
from walkytalky.core.logging import get_logger
from walkytalky.core.utils import utc_now_iso
from walkytalky.repositories.base import PartyRepository
from walkytalky.schemas.models import EVERYONE_CHANNEL, MediaKind, Message
from walkytalky.services import access_control

logger = get_logger("walkytalky.services.chat")


class ChatLog:
    def __init__(self, repository: PartyRepository) -> None:
        self.repository = repository

    def append(
        self,
        party_id: str,
        channel_id: str,
        sender_id: str,
        text: str = "",
        media_ref: Optional[str] = None,
        media_kind: Optional[MediaKind] = None,
    ) -> Message:
        """
        Append a message to a channel.

        Args:
            party_id: Party the channel belongs to
            channel_id: "everyone" or a team ID
            sender_id: Must be a party member, and a team member for team channels
            text: Message text; may be empty when media is attached
            media_ref: Opaque reference to uploaded media
            media_kind: Kind of media; an untyped reference counts as an image

        Returns:
            The stored message with its channel position
        """
        party = self.repository.get_party(party_id)
        if party is None:
            raise PartyNotFoundError(party_id)

        if not access_control.is_member(self.repository.list_members(party_id), sender_id):
            raise NotAMemberError(sender_id)

        if channel_id != EVERYONE_CHANNEL:
            team = next((t for t in self.repository.list_teams(party_id) if t.id == channel_id), None)
            if not access_control.is_team_member(team, sender_id):
                raise NotATeamMemberError(sender_id, channel_id)

        text = text or ""
        if media_ref:
            media_kind = media_kind or MediaKind.IMAGE
            if not access_control.can_share_media(party.settings, media_kind):
                raise MediaDisabledError(media_kind.value)
        else:
            media_ref, media_kind = None, None
            if not text.strip():
                raise ValidationError("Message needs text or media")

        def _build(position: int) -> Message:
            return Message(
                id=str(uuid4()),
                party_id=party_id,
                channel_id=channel_id,
                position=position,
                sender_id=sender_id,
                text=text,
                media_ref=media_ref,
                media_kind=media_kind,
                timestamp=utc_now_iso(),
            )

        message = self.repository.append_message(party_id, channel_id, _build)
        logger.debug(f"Appended message {message.position} to {party_id}/{channel_id}")
        return message

    def list_messages(
        self,
        party_id: str,
        channel_id: str,
        after: Optional[int] = None,
    ) -> Iterator[Message]:
        """
        Messages of a channel in append order.

        Returns a fresh lazy iterator on every call; ``after`` skips
        everything up to and including that position.
        """
        return self.repository.iter_messages(party_id, channel_id, after=after)

    def follow(
        self,
        party_id: str,
        channel_id: str,
        stop: threading.Event,
        after: Optional[int] = None,
        poll_interval: float = 1.0,
    ) -> Iterator[Message]:
        """
        Yield messages as they are appended until ``stop`` is set.

        Starts after ``after`` (or from the beginning) and re-reads the
        channel every ``poll_interval`` seconds, so the caller decides
        whether to push the stream or drain it in batches.
        """
        cursor = after
        while not stop.is_set():
            for message in self.repository.iter_messages(party_id, channel_id, after=cursor):
                cursor = message.position
                yield message
            stop.wait(poll_interval)
