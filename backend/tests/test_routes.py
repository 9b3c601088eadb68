"""HTTP surface tests through the FastAPI test client."""

NOW = "2025-02-10T09:00:00"


def _create_player(client, name, level, phone):
    response = client.post(
        "/api/players",
        json={"name": name, "level": level, "category": 4, "phone": phone},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _create_court(client, **overrides):
    payload = {"name": "Court 1", "days_available": [0, 1, 2, 3, 4, 5, 6], "time_slots": ["18:00", "19:30"]}
    payload.update(overrides)
    response = client.post("/api/courts", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _four_players(client):
    return [
        _create_player(client, name, level, f"11 2233-44{i:02d}")
        for i, (name, level) in enumerate([("Ana", 4.0), ("Bruno", 4.1), ("Carla", 4.2), ("Diego", 4.3)])
    ]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestPlayers:
    def test_create_normalizes_phone(self, client):
        player = _create_player(client, "  Ana ", 4.0, "11 2233-4455")
        assert player["phone"] == "+541122334455"
        assert player["name"] == "Ana"
        assert player["available"] is True

    def test_duplicate_phone(self, client):
        _create_player(client, "Ana", 4.0, "1122334455")
        response = client.post(
            "/api/players",
            json={"name": "Other", "level": 3.0, "category": 3, "phone": "+541122334455"},
        )
        assert response.status_code == 409

    def test_invalid_payloads(self, client):
        bad_level = client.post("/api/players", json={"name": "A", "level": -1, "category": 4, "phone": "1122334455"})
        bad_phone = client.post("/api/players", json={"name": "A", "level": 4, "category": 4, "phone": "12"})
        bad_sublevel = client.post(
            "/api/players",
            json={"name": "A", "level": 4, "category": 4, "phone": "1122334455", "sublevel": "pro"},
        )
        assert bad_level.status_code == 422
        assert bad_phone.status_code == 422
        assert bad_sublevel.status_code == 422

    def test_update_and_filter(self, client):
        ana = _create_player(client, "Ana", 4.0, "1122334455")
        _create_player(client, "Bruno", 4.0, "1122334466")

        response = client.put(f"/api/players/{ana['id']}", json={"available": False})
        assert response.status_code == 200
        assert response.json()["available"] is False

        available = client.get("/api/players", params={"available": True}).json()
        assert [p["name"] for p in available] == ["Bruno"]

    def test_missing_player(self, client):
        assert client.get("/api/players/999").status_code == 404


class TestCourts:
    def test_create_normalizes_slots_and_days(self, client):
        court = _create_court(client, time_slots=["9:00", "18:30"], days_available=[3, 1, 1])
        assert court["time_slots"] == ["09:00", "18:30"]
        assert court["days_available"] == [1, 3]

    def test_invalid_day_and_slot(self, client):
        assert client.post("/api/courts", json={"name": "X", "days_available": [7]}).status_code == 422
        assert client.post("/api/courts", json={"name": "X", "time_slots": ["late"]}).status_code == 422
        assert client.post("/api/courts", json={"name": "X", "court_type": "clay"}).status_code == 422

    def test_update(self, client):
        court = _create_court(client)
        response = client.put(f"/api/courts/{court['id']}", json={"is_active": False})
        assert response.json()["is_active"] is False
        assert response.json()["time_slots"] == ["18:00", "19:30"]


class TestMatchFlow:
    def test_daily_cycle_then_confirm_by_sms_and_api(self, client):
        players = _four_players(client)
        _create_court(client)

        cycle = client.post("/api/cycles/daily", json={"now": NOW})
        assert cycle.status_code == 200
        assert cycle.json()["matches_created"] == 1

        [match] = client.get("/api/matches", params={"status": "notified"}).json()
        assert len(match["notifications"]) == 4
        assert all(n["state"] == "pending" for n in match["notifications"])

        inbound = client.post("/api/sms/inbound", json={"phone": players[0]["phone"], "body": "SI", "now": NOW})
        assert inbound.status_code == 200
        assert inbound.json()["kind"] == "invitation"
        assert inbound.json()["accepted"] is True

        for player in players[1:]:
            response = client.post("/api/matches/confirm", json={"phone": player["phone"], "now": NOW})
            assert response.status_code == 200

        assert response.json()["match_complete"] is True
        assert client.get(f"/api/matches/{match['id']}").json()["status"] == "confirmed"

        scan = client.post("/api/cycles/confirmation-scan", json={"now": NOW})
        assert scan.status_code == 200
        assert scan.json()["transitions"] == 0

        invitations = client.get("/api/sms/log", params={"message_type": "invitation"}).json()
        assert len(invitations) == 4

    def test_unrecognized_sms_gets_help(self, client):
        player = _create_player(client, "Ana", 4.0, "1122334455")
        response = client.post("/api/sms/inbound", json={"phone": player["phone"], "body": "hello?", "now": NOW})
        assert response.json()["kind"] == "unrecognized"
        replies = client.get("/api/sms/log", params={"message_type": "reply"}).json()
        assert len(replies) == 1
        assert "YES" in replies[0]["message_body"]

    def test_join_and_leave(self, client):
        ana = _create_player(client, "Ana", 4.0, "1122334455")
        bruno = _create_player(client, "Bruno", 4.1, "1122334466")
        _create_court(client)

        created = client.post("/api/matches/join", json={"phone": ana["phone"], "now": NOW})
        joined = client.post("/api/matches/join", json={"phone": bruno["phone"], "now": NOW})
        assert created.json()["action"] == "created"
        assert joined.json()["action"] == "joined"
        assert joined.json()["match_id"] == created.json()["match_id"]

        left = client.post("/api/matches/leave", json={"phone": bruno["phone"], "now": NOW})
        assert left.status_code == 200
        assert left.json()["needs_replacement"] is False

        match = client.get(f"/api/matches/{created.json()['match_id']}").json()
        assert match["player_ids"] == [ana["id"]]

    def test_join_errors(self, client):
        _create_court(client)
        unknown = client.post("/api/matches/join", json={"phone": "+5491199999999", "now": NOW})
        assert unknown.status_code == 404

        ana = _create_player(client, "Ana", 4.0, "1122334455")
        bad_time = client.post("/api/matches/join", json={"phone": ana["phone"], "requested_time": "soon", "now": NOW})
        assert bad_time.status_code == 422
        assert "not a valid day" in bad_time.json()["detail"]

        no_court = client.post(
            "/api/matches/join",
            json={"phone": ana["phone"], "requested_time": "2025-02-11T06:00", "now": NOW},
        )
        assert no_court.status_code == 422

    def test_leave_foreign_match_is_forbidden(self, client):
        ana = _create_player(client, "Ana", 4.0, "1122334455")
        bruno = _create_player(client, "Bruno", 4.0, "1122334466")
        _create_court(client)
        match_id = client.post("/api/matches/join", json={"phone": ana["phone"], "now": NOW}).json()["match_id"]

        response = client.post("/api/matches/leave", json={"phone": bruno["phone"], "match_id": match_id, "now": NOW})

        assert response.status_code == 403

    def test_cancel_endpoint(self, client):
        ana = _create_player(client, "Ana", 4.0, "1122334455")
        _create_court(client)
        match_id = client.post("/api/matches/join", json={"phone": ana["phone"], "now": NOW}).json()["match_id"]

        first = client.post(f"/api/matches/{match_id}/cancel", json={"reason": "court_unavailable", "now": NOW})
        second = client.post(f"/api/matches/{match_id}/cancel", json={"reason": "court_unavailable", "now": NOW})

        assert first.status_code == 200
        assert first.json()["reason"] == "court_unavailable"
        assert second.status_code == 409
        assert client.get(f"/api/matches/{match_id}").json()["status"] == "canceled"

    def test_unknown_match_and_replacement(self, client):
        assert client.get("/api/matches/999").status_code == 404
        assert client.post("/api/matches/999/cancel", json={"reason": "player_left"}).status_code == 404
        assert client.post("/api/replacements/999/respond", json={"accepted": True}).status_code == 404

    def test_player_question(self, client):
        ana = _create_player(client, "Ana", 4.0, "1122334455")
        _create_court(client)
        client.post("/api/matches/join", json={"phone": ana["phone"], "now": NOW})

        response = client.post("/api/questions", json={"phone": ana["phone"], "question": "court"})

        assert response.json()["success"] is True
        assert response.json()["data"]["name"] == "Court 1"
