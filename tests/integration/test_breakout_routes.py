"""Integration tests for breakout invitation and room endpoints."""

import json
import threading
import time
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.core.events import get_event_broker, invitee_topic, inviter_topic, room_topic
from tests.fakes import FakeSupabaseClient

BASE = "/api/v1/breakouts"
TABLE = "breakout_invites"

Headers = Callable[[dict[str, Any]], dict[str, str]]


def send_invite(client: TestClient, auth_headers: Headers, inviter: dict, invitee: dict, **extra: Any) -> Any:
    return client.post(
        f"{BASE}/invitations",
        json={"invitee_id": invitee["id"], **extra},
        headers=auth_headers(inviter),
    )


def when_subscribed(topic: str, action: Callable[[], Any], timeout: float = 5.0) -> threading.Thread:
    """Run an action on another thread once a stream is listening on the topic."""
    broker = get_event_broker()

    def run() -> None:
        deadline = time.monotonic() + timeout
        while broker.subscriber_count(topic) == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        action()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


@pytest.fixture
def slow_poll(test_settings: Any) -> Any:
    """Make periodic re-checks too slow to matter, so only change events wake streams."""
    with patch(
        "src.api.routes.breakouts.get_settings",
        return_value=test_settings.model_copy(update={"room_watch_poll_seconds": 30.0}),
    ):
        yield


@pytest.fixture
def janitor() -> MagicMock:
    """Replace the provider-side room cleanup."""
    with patch("src.api.routes.breakouts.RoomJanitor") as mock_cls:
        mock_cls.return_value.delete_external_room = AsyncMock(return_value={"success": True})
        yield mock_cls.return_value


class TestCreateInvitation:
    """Tests for POST /breakouts/invitations."""

    def test_team_member_sends_invitation(
        self, client: TestClient, people: dict, auth_headers: Headers, fake_supabase: FakeSupabaseClient
    ) -> None:
        response = send_invite(client, auth_headers, people["team"], people["client"])

        assert response.status_code == 201
        data = response.json()
        assert data["room_id"].startswith("breakout-")
        assert fake_supabase.rows(TABLE)[0]["id"] == data["invite_id"]

    def test_client_is_forbidden(
        self, client: TestClient, people: dict, auth_headers: Headers, fake_supabase: FakeSupabaseClient
    ) -> None:
        response = send_invite(client, auth_headers, people["client"], people["other_client"])

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"
        assert fake_supabase.rows(TABLE) == []

    def test_invalid_room_name_rejected(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        response = send_invite(client, auth_headers, people["team"], people["client"], room_name="no spaces!")

        assert response.status_code == 422

    def test_requires_authentication(self, client: TestClient, people: dict) -> None:
        response = client.post(f"{BASE}/invitations", json={"invitee_id": people["client"]["id"]})

        assert response.status_code == 401

    def test_unknown_profile_is_unauthenticated(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        stranger = {"user_id": "a9999999-9999-4999-8999-999999999999", "email": "x@example.com"}

        response = send_invite(client, auth_headers, stranger, people["client"])

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"


class TestRespond:
    """Tests for POST /breakouts/invitations/{id}/respond."""

    def test_accept_then_repeat_is_conflict(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]
        url = f"{BASE}/invitations/{invite_id}/respond"

        first = client.post(url, json={"response": "accept"}, headers=auth_headers(people["client"]))
        second = client.post(url, json={"response": "decline"}, headers=auth_headers(people["client"]))

        assert first.status_code == 200
        assert first.json()["status"] == "accepted"
        assert second.status_code == 409
        body = second.json()
        assert body["error"] == "already_handled"
        assert body["details"][0]["msg"] == "accepted"

    def test_decline_removes_invitation(
        self, client: TestClient, people: dict, auth_headers: Headers, fake_supabase: FakeSupabaseClient
    ) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]

        response = client.post(
            f"{BASE}/invitations/{invite_id}/respond",
            json={"response": "decline"},
            headers=auth_headers(people["client"]),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "declined"
        assert fake_supabase.rows(TABLE) == []

    def test_wrong_invitee_is_forbidden(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]

        response = client.post(
            f"{BASE}/invitations/{invite_id}/respond",
            json={"response": "accept"},
            headers=auth_headers(people["other_client"]),
        )

        assert response.status_code == 403

    def test_unknown_invitation(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        response = client.post(
            f"{BASE}/invitations/99999999-9999-4999-8999-999999999999/respond",
            json={"response": "accept"},
            headers=auth_headers(people["client"]),
        )

        assert response.status_code == 404

    def test_invalid_response_value(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]

        response = client.post(
            f"{BASE}/invitations/{invite_id}/respond",
            json={"response": "maybe"},
            headers=auth_headers(people["client"]),
        )

        assert response.status_code == 422


class TestListings:
    """Tests for pending, sent and active listings."""

    def test_pending_and_sent(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        send_invite(client, auth_headers, people["team"], people["client"])

        pending = client.get(f"{BASE}/invitations/pending", headers=auth_headers(people["client"])).json()
        sent = client.get(f"{BASE}/invitations/sent", headers=auth_headers(people["team"])).json()

        assert len(pending) == 1
        assert pending[0]["inviter"]["name"] == "Tom Team"
        assert 0 < pending[0]["time_remaining"] <= 600
        assert len(sent) == 1
        assert sent[0]["invitee"]["email"] == "cleo@example.com"

    def test_active_after_accept(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]
        client.post(
            f"{BASE}/invitations/{invite_id}/respond",
            json={"response": "accept"},
            headers=auth_headers(people["client"]),
        )

        active = client.get(f"{BASE}/active", headers=auth_headers(people["team"])).json()

        assert len(active) == 1
        assert active[0]["status"] == "accepted"
        assert active[0]["invitee"]["name"] == "Cleo Client"


class TestBreakoutLifecycle:
    """Invite, accept, join, complete."""

    def test_full_lifecycle(
        self,
        client: TestClient,
        people: dict,
        auth_headers: Headers,
        fake_supabase: FakeSupabaseClient,
        janitor: MagicMock,
    ) -> None:
        team, cleo = auth_headers(people["team"]), auth_headers(people["client"])
        created = send_invite(client, auth_headers, people["team"], people["client"], room_name="breakout-xyz").json()
        invite_id, room_id = created["invite_id"], created["room_id"]

        client.post(f"{BASE}/invitations/{invite_id}/respond", json={"response": "accept"}, headers=cleo)

        token = client.post(f"{BASE}/rooms/{room_id}/token", headers=cleo)
        assert token.status_code == 200
        assert token.json()["room"] == "breakout-xyz"

        ongoing = client.post(f"{BASE}/invitations/{invite_id}/ongoing", headers=team)
        again = client.post(f"{BASE}/invitations/{invite_id}/ongoing", headers=cleo)
        assert ongoing.json()["status"] == "ongoing"
        assert again.status_code == 200

        participants = client.get(f"{BASE}/rooms/{room_id}/participants", headers=team).json()
        assert sorted(p["name"] for p in participants) == ["Cleo Client", "Tom Team"]

        completed = client.post(f"{BASE}/rooms/{room_id}/complete", headers=team)
        assert completed.status_code == 200
        assert completed.json() == {"deleted_count": 1, "external_room_deleted": True, "external_error": None}
        janitor.delete_external_room.assert_awaited_once_with("breakout-xyz")

        exists = client.get(f"{BASE}/rooms/{room_id}/exists", headers=cleo).json()
        assert exists == {"room_id": "breakout-xyz", "exists": False}
        assert fake_supabase.rows(TABLE) == []

    def test_complete_without_live_session(
        self, client: TestClient, people: dict, auth_headers: Headers, janitor: MagicMock
    ) -> None:
        send_invite(client, auth_headers, people["team"], people["client"], room_name="breakout-xyz")

        response = client.post(f"{BASE}/rooms/breakout-xyz/complete", headers=auth_headers(people["team"]))

        assert response.status_code == 409
        assert response.json()["error"] == "no_active_session"
        janitor.delete_external_room.assert_not_awaited()

    def test_complete_reports_provider_failure(
        self, client: TestClient, people: dict, auth_headers: Headers, janitor: MagicMock
    ) -> None:
        janitor.delete_external_room.return_value = {"success": False, "error": "room not found"}
        invite_id = send_invite(
            client, auth_headers, people["team"], people["client"], room_name="breakout-xyz"
        ).json()["invite_id"]
        client.post(
            f"{BASE}/invitations/{invite_id}/respond",
            json={"response": "accept"},
            headers=auth_headers(people["client"]),
        )

        response = client.post(f"{BASE}/rooms/breakout-xyz/complete", headers=auth_headers(people["client"]))

        assert response.status_code == 200
        assert response.json() == {
            "deleted_count": 1,
            "external_room_deleted": False,
            "external_error": "room not found",
        }

    def test_token_requires_invitation(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        response = client.post(f"{BASE}/rooms/breakout-xyz/token", headers=auth_headers(people["client"]))

        assert response.status_code == 403
        assert response.json()["error"] == "not_invited"

    def test_external_delete_endpoint(self, client: TestClient, people: dict, auth_headers: Headers, janitor: MagicMock) -> None:
        response = client.delete(f"{BASE}/rooms/breakout-xyz/external", headers=auth_headers(people["team"]))

        assert response.status_code == 200
        assert response.json() == {"success": True, "error": None}


class TestSweep:
    def test_sweep_expires_overdue(
        self, client: TestClient, people: dict, auth_headers: Headers, fake_supabase: FakeSupabaseClient
    ) -> None:
        fake_supabase.seed(TABLE, [{
            "inviter_id": people["team"]["id"],
            "invitee_id": people["client"]["id"],
            "room_id": "breakout-old",
            "status": "pending",
            "created_at": "2026-01-01T10:00:00+00:00",
            "expires_at": "2026-01-01T10:10:00+00:00",
        }])

        response = client.post(f"{BASE}/invitations/sweep", headers=auth_headers(people["team"]))

        assert response.json() == {"expired_count": 1}
        assert fake_supabase.rows(TABLE)[0]["status"] == "expired"


class TestWatchRoom:
    """Tests for the NDJSON room watch stream."""

    def test_missing_room_reports_once_and_closes(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        response = client.get(f"{BASE}/rooms/breakout-none/watch", headers=auth_headers(people["client"]))

        lines = [json.loads(line) for line in response.text.splitlines() if line]
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert lines == [{"room_id": "breakout-none", "exists": False}]

    def test_poll_notices_rows_removed_elsewhere(
        self, client: TestClient, people: dict, auth_headers: Headers, fake_supabase: FakeSupabaseClient
    ) -> None:
        fake_supabase.seed(TABLE, [{
            "inviter_id": people["team"]["id"],
            "invitee_id": people["client"]["id"],
            "room_id": "breakout-xyz",
            "status": "ongoing",
            "created_at": "2026-01-01T10:00:00+00:00",
            "expires_at": "2026-01-01T10:10:00+00:00",
        }])

        def end_session() -> None:
            fake_supabase.tables[TABLE] = []

        timer = threading.Timer(0.2, end_session)
        timer.start()
        try:
            response = client.get(f"{BASE}/rooms/breakout-xyz/watch", headers=auth_headers(people["client"]))
        finally:
            timer.cancel()

        lines = [json.loads(line) for line in response.text.splitlines() if line]
        assert lines[0] == {"room_id": "breakout-xyz", "exists": True}
        assert lines[-1] == {"room_id": "breakout-xyz", "exists": False}
        assert all(line["exists"] for line in lines[:-1])

    def test_completion_wakes_the_stream(
        self,
        client: TestClient,
        people: dict,
        auth_headers: Headers,
        fake_supabase: FakeSupabaseClient,
        janitor: MagicMock,
        slow_poll: None,
    ) -> None:
        fake_supabase.seed(TABLE, [{
            "inviter_id": people["team"]["id"],
            "invitee_id": people["client"]["id"],
            "room_id": "breakout-xyz",
            "status": "ongoing",
            "created_at": "2026-01-01T10:00:00+00:00",
            "expires_at": "2026-01-01T10:10:00+00:00",
        }])
        completions = []

        def complete() -> None:
            completions.append(
                client.post(f"{BASE}/rooms/breakout-xyz/complete", headers=auth_headers(people["team"]))
            )

        started = time.monotonic()
        thread = when_subscribed(room_topic("breakout-xyz"), complete)
        response = client.get(f"{BASE}/rooms/breakout-xyz/watch", headers=auth_headers(people["client"]))
        thread.join(timeout=5)

        lines = [json.loads(line) for line in response.text.splitlines() if line]
        assert lines == [
            {"room_id": "breakout-xyz", "exists": True},
            {"room_id": "breakout-xyz", "exists": False},
        ]
        assert time.monotonic() - started < 10
        assert completions[0].json()["deleted_count"] == 1


class TestWatchInvitations:
    """Tests for the NDJSON invitation list streams."""

    def test_snapshot_then_close(self, client: TestClient, people: dict, auth_headers: Headers) -> None:
        response = client.get(
            f"{BASE}/invitations/pending/watch",
            params={"max_updates": 1},
            headers=auth_headers(people["client"]),
        )

        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert [json.loads(line) for line in response.text.splitlines() if line] == [{"invitations": []}]

    def test_new_invitation_arrives_on_invitee_stream(
        self, client: TestClient, people: dict, auth_headers: Headers, slow_poll: None
    ) -> None:
        sent = []
        thread = when_subscribed(
            invitee_topic(people["client"]["id"]),
            lambda: sent.append(send_invite(client, auth_headers, people["team"], people["client"])),
        )

        started = time.monotonic()
        response = client.get(
            f"{BASE}/invitations/pending/watch",
            params={"max_updates": 2},
            headers=auth_headers(people["client"]),
        )
        thread.join(timeout=5)

        first, second = [json.loads(line) for line in response.text.splitlines() if line]
        assert first == {"invitations": []}
        assert [inv["id"] for inv in second["invitations"]] == [sent[0].json()["invite_id"]]
        assert second["invitations"][0]["inviter"]["name"] == "Tom Team"
        assert time.monotonic() - started < 10

    def test_sent_stream_follows_responses(
        self, client: TestClient, people: dict, auth_headers: Headers, slow_poll: None
    ) -> None:
        invite_id = send_invite(client, auth_headers, people["team"], people["client"]).json()["invite_id"]
        thread = when_subscribed(
            inviter_topic(people["team"]["id"]),
            lambda: client.post(
                f"{BASE}/invitations/{invite_id}/respond",
                json={"response": "accept"},
                headers=auth_headers(people["client"]),
            ),
        )

        response = client.get(
            f"{BASE}/invitations/sent/watch",
            params={"max_updates": 2},
            headers=auth_headers(people["team"]),
        )
        thread.join(timeout=5)

        first, second = [json.loads(line) for line in response.text.splitlines() if line]
        assert first["invitations"][0]["status"] == "pending"
        assert second["invitations"][0]["status"] == "accepted"

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/invitations/pending/watch")

        assert response.status_code == 401
