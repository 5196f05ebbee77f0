"""
HTTP-level tests for the authenticated API: access control, error mapping
and response shapes. Services are mocked; no database is needed.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from golf_league.api.auth_dependencies import RequestContext, get_request_context
from golf_league.api.main import app
from golf_league.database.db import get_db_session
from golf_league.services.errors import (
    AggregateFetchError,
    CapacityError,
    CascadeStepError,
    EventLockedError,
    NotFoundError,
)

EVENT = {
    "id": 1,
    "date": "2025-06-07",
    "course_id": 3,
    "course_name": "Pine Valley Muni",
    "first_tee_time": "08:00",
    "first_tee_time_display": "8:00 AM",
    "holes": 18,
    "slots_per_group": 4,
    "max_players": 8,
    "tee_interval_minutes": 10,
    "is_locked": False,
    "notes": None,
    "created_at": None,
}


async def _fake_session():
    yield MagicMock()


@pytest.fixture
def as_role():
    """Return a function that makes every request run as the given role."""

    def _set(role):
        app.dependency_overrides[get_request_context] = lambda: RequestContext(user_id="user-1", role=role)
        return TestClient(app)

    app.dependency_overrides[get_db_session] = _fake_session
    yield _set
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous():
    app.dependency_overrides[get_db_session] = _fake_session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:

    def test_missing_token(self, anonymous):
        response = anonymous.get("/api/events")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, anonymous):
        response = anonymous.get("/api/events", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @patch("golf_league.services.data_service.get_user_roles", new_callable=AsyncMock)
    @patch("golf_league.services.event_service.list_events", new_callable=AsyncMock)
    def test_valid_token_resolves_role(self, mock_list, mock_roles, anonymous):
        from golf_league.services import auth_service

        mock_roles.return_value = ["admin"]
        mock_list.return_value = [EVENT]
        token = auth_service.create_access_token({"sub": "user-9"})

        response = anonymous.get("/api/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert mock_roles.await_args.args[1] == "user-9"

    def test_non_admin_cannot_create_event(self, as_role):
        client = as_role("other")
        response = client.post("/api/events", json={
            "date": "2025-06-07", "course_id": 3, "first_tee_time": "08:00", "max_players": 8,
        })
        assert response.status_code == 403

    def test_scorer_cannot_delete_event(self, as_role):
        assert as_role("scorer").delete("/api/events/1").status_code == 403

    @patch("golf_league.services.scoring_service.save_event_scores", new_callable=AsyncMock)
    def test_scorer_can_enter_scores(self, mock_save, as_role):
        mock_save.return_value = [{"id": 1, "player_id": 5, "points": 21.0}]
        response = as_role("scorer").post(
            "/api/events/1/scores", json={"scores": [{"player_id": 5, "points": 21}]}
        )
        assert response.status_code == 200

    def test_other_cannot_enter_scores(self, as_role):
        response = as_role("other").post(
            "/api/events/1/scores", json={"scores": [{"player_id": 5, "points": 21}]}
        )
        assert response.status_code == 403


class TestEvents:

    @patch("golf_league.services.event_service.create_event", new_callable=AsyncMock)
    def test_create_event(self, mock_create, as_role):
        mock_create.return_value = EVENT
        response = as_role("admin").post("/api/events", json={
            "date": "2025-06-07", "course_id": 3, "first_tee_time": "08:00", "max_players": 8,
        })
        assert response.status_code == 200
        assert response.json()["first_tee_time_display"] == "8:00 AM"
        assert mock_create.await_args.kwargs["max_players"] == 8

    def test_create_event_needs_course(self, as_role):
        response = as_role("admin").post("/api/events", json={
            "date": "2025-06-07", "first_tee_time": "08:00", "max_players": 8,
        })
        assert response.status_code == 422

    @patch("golf_league.services.event_service.create_event", new_callable=AsyncMock)
    def test_create_event_midnight_is_400(self, mock_create, as_role):
        mock_create.side_effect = ValueError("Tee times would run past midnight")
        response = as_role("admin").post("/api/events", json={
            "date": "2025-06-07", "course_name": "Links", "first_tee_time": "23:40", "max_players": 40,
        })
        assert response.status_code == 400
        assert "midnight" in response.json()["detail"]

    @patch("golf_league.services.event_service.get_event", new_callable=AsyncMock)
    def test_missing_event_is_404(self, mock_get, as_role):
        mock_get.side_effect = NotFoundError("Event not found")
        response = as_role("other").get("/api/events/99")
        assert response.status_code == 404

    @patch("golf_league.services.event_service.update_event", new_callable=AsyncMock)
    def test_update_locked_event_is_409(self, mock_update, as_role):
        mock_update.side_effect = EventLockedError(1)
        response = as_role("admin").put("/api/events/1", json={"notes": "x"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Event is locked"

    @patch("golf_league.services.event_service.delete_event", new_callable=AsyncMock)
    def test_delete_failure_names_step(self, mock_delete, as_role):
        mock_delete.side_effect = CascadeStepError("rsvp messages", "lock timeout")
        response = as_role("admin").delete("/api/events/1")
        assert response.status_code == 500
        assert "rsvp messages" in response.json()["detail"]

    @patch("golf_league.services.event_service.delete_event", new_callable=AsyncMock)
    def test_delete_missing_event(self, mock_delete, as_role):
        mock_delete.return_value = False
        assert as_role("admin").delete("/api/events/1").status_code == 404


class TestRoster:

    @patch("golf_league.services.roster_service.update_player_status", new_callable=AsyncMock)
    def test_capacity_is_409(self, mock_update, as_role):
        mock_update.side_effect = CapacityError("Max players reached (8)")
        response = as_role("admin").put("/api/event-players/4/status", json={"status": "yes"})
        assert response.status_code == 409
        assert "Max players reached" in response.json()["detail"]

    def test_invalid_status_rejected(self, as_role):
        response = as_role("admin").put("/api/event-players/4/status", json={"status": "maybe"})
        assert response.status_code == 422

    @patch("golf_league.services.roster_service.list_event_players", new_callable=AsyncMock)
    def test_contact_fields_only_for_admins(self, mock_list, as_role):
        mock_list.return_value = []
        as_role("other").get("/api/events/1/players")
        assert mock_list.await_args.kwargs["include_contact"] is False

        as_role("admin").get("/api/events/1/players?sort_by=name")
        assert mock_list.await_args.kwargs["include_contact"] is True
        assert mock_list.await_args.kwargs["sort_by"] == "name"


class TestRsvpSend:

    @patch("golf_league.services.rsvp_service.dispatch_in_background", new_callable=AsyncMock)
    @patch("golf_league.services.rsvp_service.queue_messages", new_callable=AsyncMock)
    def test_send_queues_and_dispatches(self, mock_queue, mock_dispatch, as_role):
        mock_queue.return_value = [11, 12]
        response = as_role("admin").post(
            "/api/events/1/rsvp/send",
            json={"event_player_ids": [4, 5], "template_id": 2, "channel": "email"},
        )
        assert response.status_code == 200
        assert response.json()["queued"] == 2
        mock_dispatch.assert_called_once_with([11, 12])

    @patch("golf_league.services.rsvp_service.queue_messages", new_callable=AsyncMock)
    def test_send_without_contacts_is_400(self, mock_queue, as_role):
        mock_queue.side_effect = ValueError("No valid contact information for selected players.")
        response = as_role("admin").post(
            "/api/events/1/rsvp/send",
            json={"event_player_ids": [4], "template_id": 2, "channel": "sms"},
        )
        assert response.status_code == 400


class TestStats:

    @patch("golf_league.services.scoring_service.get_player_statistics", new_callable=AsyncMock)
    def test_partial_failure_is_500(self, mock_stats, as_role):
        mock_stats.side_effect = AggregateFetchError([3], {3: "timeout"})
        response = as_role("other").get("/api/stats/players")
        assert response.status_code == 500


class TestPlayers:

    @patch("golf_league.services.data_service.list_players", new_callable=AsyncMock)
    def test_public_listing_hides_contacts(self, mock_list, anonymous):
        mock_list.return_value = [{"id": 1, "name": "Player 01"}]
        response = anonymous.get("/api/players")
        assert response.status_code == 200
        assert mock_list.await_args.kwargs["include_contact"] is False

    def test_create_player_requires_admin(self, as_role):
        response = as_role("scorer").post("/api/players", json={"name": "New Player"})
        assert response.status_code == 403


class TestAdminSettings:

    @patch("golf_league.services.data_service.set_setting", new_callable=AsyncMock)
    def test_unknown_setting_is_400(self, mock_set, as_role):
        response = as_role("admin").put("/api/admin/settings/tee_color", json={"value": "blue"})
        assert response.status_code == 400
        assert "Unknown setting" in response.json()["detail"]
        mock_set.assert_not_awaited()

    @patch("golf_league.services.data_service.set_setting", new_callable=AsyncMock)
    def test_valid_setting_is_stored_trimmed(self, mock_set, as_role):
        response = as_role("admin").put("/api/admin/settings/enable_sms", json={"value": " false "})
        assert response.status_code == 200
        assert response.json() == {"key": "enable_sms", "value": "false"}
        assert mock_set.await_args.args[1:] == ("enable_sms", "false")

    def test_scorer_cannot_change_settings(self, as_role):
        response = as_role("scorer").put("/api/admin/settings/enable_sms", json={"value": "false"})
        assert response.status_code == 403
