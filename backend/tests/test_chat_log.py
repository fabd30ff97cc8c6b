"""Unit tests for ChatLog."""

from __future__ import annotations

import threading

import pytest

from walkytalky.core.exceptions import (
    MediaDisabledError,
    NotAMemberError,
    NotATeamMemberError,
    PartyNotFoundError,
    ValidationError,
)
from walkytalky.schemas.models import EVERYONE_CHANNEL, MediaKind, SettingsPatch


class TestEveryoneChannel:
    """Tests for the party-wide channel."""

    def test_messages_listed_in_send_order(self, chat, add_member, party):
        add_member(party, "a")
        add_member(party, "b")

        chat.append(party.id, EVERYONE_CHANNEL, "a", text="one")
        chat.append(party.id, EVERYONE_CHANNEL, "b", text="two")
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="three")

        messages = list(chat.list_messages(party.id, EVERYONE_CHANNEL))
        assert [m.text for m in messages] == ["one", "two", "three"]
        assert [m.sender_id for m in messages] == ["a", "b", "owner"]
        assert [m.position for m in messages] == [1, 2, 3]

    def test_message_fields(self, chat, party):
        message = chat.append(party.id, EVERYONE_CHANNEL, "owner", text="hello")

        assert message.party_id == party.id
        assert message.channel_id == EVERYONE_CHANNEL
        assert message.media_ref is None
        assert message.media_kind is None
        assert message.timestamp
        assert message.id

    def test_non_member_cannot_send(self, chat, party):
        with pytest.raises(NotAMemberError):
            chat.append(party.id, EVERYONE_CHANNEL, "stranger", text="hi")
        assert list(chat.list_messages(party.id, EVERYONE_CHANNEL)) == []

    def test_unknown_party(self, chat):
        with pytest.raises(PartyNotFoundError):
            chat.append("missing", EVERYONE_CHANNEL, "owner", text="hi")

    def test_empty_message_rejected(self, chat, party):
        with pytest.raises(ValidationError):
            chat.append(party.id, EVERYONE_CHANNEL, "owner", text="   ")

    def test_listing_is_restartable(self, chat, party):
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="one")
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="two")

        first = [m.id for m in chat.list_messages(party.id, EVERYONE_CHANNEL)]
        second = [m.id for m in chat.list_messages(party.id, EVERYONE_CHANNEL)]

        assert first == second

    def test_after_cursor(self, chat, party):
        for text in ("one", "two", "three", "four"):
            chat.append(party.id, EVERYONE_CHANNEL, "owner", text=text)

        newer = list(chat.list_messages(party.id, EVERYONE_CHANNEL, after=2))
        assert [m.text for m in newer] == ["three", "four"]
        assert list(chat.list_messages(party.id, EVERYONE_CHANNEL, after=4)) == []


class TestTeamChannels:
    """Tests for per-team channels."""

    def test_team_member_can_send(self, chat, membership, add_member, party):
        add_member(party, "alice")
        team = membership.create_team(party.id, "alice", name="Red")

        chat.append(party.id, team.id, "alice", text="team only")

        assert [m.text for m in chat.list_messages(party.id, team.id)] == ["team only"]
        assert list(chat.list_messages(party.id, EVERYONE_CHANNEL)) == []

    def test_party_member_outside_team_rejected(self, chat, membership, add_member, party):
        add_member(party, "alice")
        team = membership.create_team(party.id, "owner", name="Red")

        with pytest.raises(NotATeamMemberError):
            chat.append(party.id, team.id, "alice", text="let me in")

    def test_unknown_channel_rejected(self, chat, party):
        with pytest.raises(NotATeamMemberError):
            chat.append(party.id, "no-such-team", "owner", text="hi")

    def test_positions_are_per_channel(self, chat, membership, party):
        team = membership.create_team(party.id, "owner", name="Red")

        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="a")
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="b")
        first_team_message = chat.append(party.id, team.id, "owner", text="c")

        assert first_team_message.position == 1


class TestMedia:
    """Tests for media references and their settings gates."""

    def test_image_without_text(self, chat, party):
        message = chat.append(party.id, EVERYONE_CHANNEL, "owner", media_ref="uploads/cat.png")

        assert message.text == ""
        assert message.media_ref == "uploads/cat.png"
        assert message.media_kind == MediaKind.IMAGE

    def test_image_sharing_disabled(self, chat, party_store, party):
        party_store.update_settings(party.id, "owner", SettingsPatch(image_share_enabled=False))

        with pytest.raises(MediaDisabledError):
            chat.append(party.id, EVERYONE_CHANNEL, "owner", media_ref="uploads/cat.png")

        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="text still works")

    def test_voice_disabled_blocks_audio_only(self, chat, party_store, party):
        party_store.update_settings(party.id, "owner", SettingsPatch(voice_chat_enabled=False))

        with pytest.raises(MediaDisabledError):
            chat.append(
                party.id,
                EVERYONE_CHANNEL,
                "owner",
                media_ref="uploads/clip.webm",
                media_kind=MediaKind.AUDIO,
            )

        message = chat.append(
            party.id,
            EVERYONE_CHANNEL,
            "owner",
            media_ref="uploads/cat.png",
            media_kind=MediaKind.IMAGE,
        )
        assert message.position == 1

    def test_media_kind_without_ref_is_dropped(self, chat, party):
        message = chat.append(party.id, EVERYONE_CHANNEL, "owner", text="hi", media_kind=MediaKind.AUDIO)
        assert message.media_kind is None


class TestFollow:
    """Tests for the polling message stream."""

    def test_follow_yields_backlog_then_new_messages(self, chat, party):
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="one")
        stop = threading.Event()
        stream = chat.follow(party.id, EVERYONE_CHANNEL, stop, poll_interval=0.01)

        assert next(stream).text == "one"
        chat.append(party.id, EVERYONE_CHANNEL, "owner", text="two")
        assert next(stream).text == "two"

        stop.set()
        assert list(stream) == []

    def test_follow_starts_after_cursor(self, chat, party):
        for text in ("one", "two", "three"):
            chat.append(party.id, EVERYONE_CHANNEL, "owner", text=text)
        stop = threading.Event()

        stream = chat.follow(party.id, EVERYONE_CHANNEL, stop, after=2, poll_interval=0.01)

        assert next(stream).position == 3
        stop.set()
