"""Tests for the party, team, message and profile API routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def _create(client: TestClient, owner: str = "owner", **extra) -> dict:
    response = client.post("/parties", json={"owner_user_id": owner, "name": "API Party", **extra})
    assert response.status_code == 200
    return response.json()["party"]


def _join(client: TestClient, user_id: str, code: str, **extra):
    return client.post("/parties/join", json={"user_id": user_id, "code": code, **extra})


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestPartyEndpoints:
    """Tests for /parties."""

    def test_create_party_returns_codes_to_owner(self, client):
        response = client.post(
            "/parties",
            json={"owner_user_id": "owner", "name": "API Party", "settings": {"max_members": 5}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["party"]["id"] == data["party_id"]
        assert data["party"]["admin_ids"] == ["owner"]
        assert data["party"]["settings"]["max_members"] == 5
        assert len(data["party"]["everyone_code"]) == 6
        assert len(data["party"]["single_use_codes"]) == 5
        assert "password_hash" not in data["party"]

    def test_create_party_rejects_unknown_setting(self, client):
        response = client.post(
            "/parties",
            json={"owner_user_id": "owner", "name": "API Party", "settings": {"bogus": True}},
        )
        assert response.status_code == 422

    def test_create_party_requires_name(self, client):
        response = client.post("/parties", json={"owner_user_id": "owner", "name": ""})
        assert response.status_code == 422

    def test_get_party_redacts_codes_for_members(self, client):
        party = _create(client)
        _join(client, "guest", party["everyone_code"])

        as_guest = client.get(f"/parties/{party['id']}", params={"user_id": "guest"}).json()
        as_owner = client.get(f"/parties/{party['id']}", params={"user_id": "owner"}).json()
        anonymous = client.get(f"/parties/{party['id']}").json()

        assert as_guest["party"]["everyone_code"] is None
        assert as_guest["party"]["single_use_codes"] is None
        assert anonymous["party"]["everyone_code"] is None
        assert as_owner["party"]["everyone_code"] == party["everyone_code"]
        assert [m["user_id"] for m in as_owner["members"]] == ["owner", "guest"]

    def test_members_see_codes_when_allowed(self, client):
        party = _create(client, settings={"members_can_see_join_codes": True})
        _join(client, "guest", party["everyone_code"])

        as_guest = client.get(f"/parties/{party['id']}", params={"user_id": "guest"}).json()
        assert as_guest["party"]["everyone_code"] == party["everyone_code"]

    def test_get_missing_party(self, client):
        response = client.get("/parties/does-not-exist")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["kind"] == "NotFound"

    def test_join_party(self, client):
        party = _create(client)

        response = _join(client, "guest", party["single_use_codes"][0]["code"])

        assert response.status_code == 200
        data = response.json()
        assert data["party_id"] == party["id"]
        assert data["already_member"] is False
        assert data["party"]["everyone_code"] is None

    def test_join_errors(self, client):
        party = _create(client)
        code = party["single_use_codes"][0]["code"]
        _join(client, "first", code)

        used = _join(client, "second", code)
        assert used.status_code == 400
        assert used.json()["kind"] == "AlreadyUsed"

        unknown = _join(client, "second", "ZZZZZZ")
        assert unknown.status_code == 400
        assert unknown.json()["error"] == "Invalid code"

        malformed = _join(client, "second", "??")
        assert malformed.status_code == 400
        assert malformed.json()["kind"] == "Validation"

    def test_join_requires_password(self, client):
        party = _create(client, password="pw")
        assert party["has_password"] is True

        missing = _join(client, "guest", party["everyone_code"])
        assert missing.status_code == 401
        assert missing.json()["requires_password"] is True

        ok = _join(client, "guest", party["everyone_code"], password="pw")
        assert ok.status_code == 200

    def test_join_full_party(self, client):
        party = _create(client, settings={"max_members": 1})

        response = _join(client, "guest", party["everyone_code"])

        assert response.status_code == 400
        assert response.json()["kind"] == "Full"

    def test_delete_party(self, client):
        party = _create(client)
        _join(client, "guest", party["everyone_code"])

        forbidden = client.delete(f"/parties/{party['id']}", params={"acting_user_id": "guest"})
        assert forbidden.status_code == 403

        response = client.delete(f"/parties/{party['id']}", params={"acting_user_id": "owner"})
        assert response.status_code == 200
        assert response.json()["status"] == "deleted"
        assert client.get(f"/parties/{party['id']}").status_code == 404
        assert _join(client, "late", party["everyone_code"]).status_code == 400


class TestAdminEndpoints:
    """Tests for settings, password, codes and admin management."""

    @pytest.fixture
    def party(self, client) -> dict:
        party = _create(client)
        _join(client, "guest", party["everyone_code"])
        return party

    def test_update_settings(self, client, party):
        response = client.put(
            f"/parties/{party['id']}/settings",
            json={"acting_user_id": "owner", "settings": {"allow_multiple_teams": False}},
        )

        assert response.status_code == 200
        settings = response.json()["party"]["settings"]
        assert settings["allow_multiple_teams"] is False
        assert settings["max_teams_per_user"] == 3

    def test_update_settings_non_admin(self, client, party):
        response = client.put(
            f"/parties/{party['id']}/settings",
            json={"acting_user_id": "guest", "settings": {"max_members": 2}},
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "Unauthorized"

    def test_update_password(self, client, party):
        response = client.put(f"/parties/{party['id']}/password", json={"acting_user_id": "owner", "password": "pw"})
        assert response.json()["party"]["has_password"] is True

        response = client.put(f"/parties/{party['id']}/password", json={"acting_user_id": "owner"})
        assert response.json()["party"]["has_password"] is False

    def test_regenerate_codes(self, client, party):
        old = {c["code"] for c in party["single_use_codes"]}

        response = client.post(f"/parties/{party['id']}/codes/regenerate", json={"acting_user_id": "owner"})

        assert response.status_code == 200
        new = {c["code"] for c in response.json()["party"]["single_use_codes"]}
        assert len(new) == 5
        assert not old & new
        assert _join(client, "late", next(iter(old))).status_code == 400

    def test_add_and_remove_admin(self, client, party):
        added = client.post(
            f"/parties/{party['id']}/admins",
            json={"acting_user_id": "owner", "target_user_id": "guest"},
        )
        assert added.status_code == 200
        assert added.json()["party"]["admin_ids"] == ["owner", "guest"]

        again = client.post(
            f"/parties/{party['id']}/admins",
            json={"acting_user_id": "owner", "target_user_id": "guest"},
        )
        assert again.status_code == 400

        removed = client.delete(f"/parties/{party['id']}/admins/owner", params={"acting_user_id": "guest"})
        assert removed.status_code == 200
        assert removed.json()["party"]["admin_ids"] == ["guest"]

        last = client.delete(f"/parties/{party['id']}/admins/guest", params={"acting_user_id": "guest"})
        assert last.status_code == 400
        assert last.json()["kind"] == "LastAdmin"


class TestTeamEndpoints:
    """Tests for team routes."""

    @pytest.fixture
    def party(self, client) -> dict:
        party = _create(client)
        _join(client, "guest", party["everyone_code"])
        return party

    def test_create_list_and_join(self, client, party):
        created = client.post(
            f"/parties/{party['id']}/teams",
            json={"acting_user_id": "owner", "name": "Red", "color": "#ff0000"},
        )
        assert created.status_code == 200
        team = created.json()["team"]
        assert team["member_ids"] == ["owner"]

        joined = client.post(f"/parties/{party['id']}/teams/{team['id']}/join", json={"user_id": "guest"})
        assert joined.status_code == 200
        assert joined.json()["already_member"] is False

        again = client.post(f"/parties/{party['id']}/teams/{team['id']}/join", json={"user_id": "guest"})
        assert again.json()["already_member"] is True

        teams = client.get(f"/parties/{party['id']}/teams").json()["teams"]
        assert [t["member_ids"] for t in teams] == [["owner", "guest"]]

    def test_private_team(self, client, party):
        team = client.post(
            f"/parties/{party['id']}/teams",
            json={"acting_user_id": "owner", "name": "Secret", "is_private": True},
        ).json()["team"]

        response = client.post(f"/parties/{party['id']}/teams/{team['id']}/join", json={"user_id": "guest"})

        assert response.status_code == 403
        assert response.json()["kind"] == "PrivateTeam"

    def test_join_unknown_team(self, client, party):
        response = client.post(f"/parties/{party['id']}/teams/nope/join", json={"user_id": "guest"})
        assert response.status_code == 404

    def test_list_teams_unknown_party(self, client):
        assert client.get("/parties/missing/teams").status_code == 404


class TestMessageEndpoints:
    """Tests for channel message routes."""

    def test_send_and_list(self, client):
        party = _create(client)
        _join(client, "guest", party["everyone_code"])
        url = f"/parties/{party['id']}/channels/everyone/messages"

        for sender, text in (("owner", "one"), ("guest", "two"), ("owner", "three")):
            response = client.post(url, json={"sender_user_id": sender, "text": text})
            assert response.status_code == 200

        messages = client.get(url).json()["messages"]
        assert [m["text"] for m in messages] == ["one", "two", "three"]

        newer = client.get(url, params={"after": 1}).json()["messages"]
        assert [m["position"] for m in newer] == [2, 3]

    def test_non_member_rejected(self, client):
        party = _create(client)

        response = client.post(
            f"/parties/{party['id']}/channels/everyone/messages",
            json={"sender_user_id": "stranger", "text": "hi"},
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "NotAMember"

    def test_media_disabled(self, client):
        party = _create(client, settings={"voice_chat_enabled": False})

        response = client.post(
            f"/parties/{party['id']}/channels/everyone/messages",
            json={"sender_user_id": "owner", "media_ref": "clip.webm", "media_kind": "audio"},
        )

        assert response.status_code == 403
        assert response.json()["kind"] == "MediaDisabled"


class TestProfileEndpoints:
    """Tests for /users/{user_id}."""

    def test_unknown_user(self, client):
        response = client.get("/users/nobody")
        assert response.status_code == 200
        assert response.json()["user"] is None

    def test_save_and_get(self, client):
        saved = client.post("/users/u1", json={"username": "Una", "color": "#ff00ff"})
        assert saved.status_code == 200

        user = client.get("/users/u1").json()["user"]
        assert user["username"] == "Una"
        assert user["color"] == "#ff00ff"

    def test_blank_username(self, client):
        response = client.post("/users/u1", json={"username": "   "})
        assert response.status_code == 400
