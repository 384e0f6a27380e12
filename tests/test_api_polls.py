"""Tests for the polls API."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

from httpx import AsyncClient

from conftest import session_cookies
from sportsmockery.db.engine import get_session
from sportsmockery.db.repository import Repository


async def _create(client: AsyncClient, **overrides) -> dict:
    payload = {
        "title": "QB question",
        "question": "Who should start at QB?",
        "options": [{"option_text": "Caleb"}, {"option_text": "Tyson"}, {"option_text": "Other"}],
        **overrides,
    }
    resp = await client.post("/api/polls", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreatePoll:
    async def test_create_single(self, client: AsyncClient):
        body = await _create(client, team_theme="bears")
        poll = body["poll"]
        assert poll["status"] == "active"
        assert poll["is_multi_select"] is False
        assert [o["display_order"] for o in poll["options"]] == [0, 1, 2]
        assert body["shortcode"] == f"[poll:{poll['id']}]"
        assert body["embed_url"].endswith(f"/polls/embed/{poll['id']}")

    async def test_multiple_defaults_to_multi_select(self, client: AsyncClient):
        poll = (await _create(client, poll_type="multiple"))["poll"]
        assert poll["is_multi_select"] is True

    async def test_scale_generates_options(self, client: AsyncClient):
        poll = (
            await _create(client, poll_type="scale", scale_min=1, scale_max=5, options=[])
        )["poll"]
        assert [o["option_text"] for o in poll["options"]] == ["1", "2", "3", "4", "5"]

    async def test_scale_needs_range(self, client: AsyncClient):
        resp = await client.post(
            "/api/polls",
            json={"title": "t", "question": "q", "poll_type": "scale", "scale_min": 5, "scale_max": 5},
        )
        assert resp.status_code == 400

    async def test_needs_two_options(self, client: AsyncClient):
        resp = await client.post(
            "/api/polls", json={"title": "t", "question": "q", "options": [{"option_text": "a"}]}
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "At least 2 options are required"}

    async def test_needs_title(self, client: AsyncClient):
        resp = await client.post(
            "/api/polls",
            json={"title": " ", "question": "q", "options": [{"option_text": "a"}, {"option_text": "b"}]},
        )
        assert resp.status_code == 400

    async def test_future_start_is_scheduled(self, client: AsyncClient):
        later = (datetime.now(UTC) + timedelta(days=1)).isoformat()
        poll = (await _create(client, starts_at=later))["poll"]
        assert poll["status"] == "scheduled"


class TestListPolls:
    async def test_filters(self, client: AsyncClient):
        await _create(client, title="Bears poll", team_theme="bears")
        await _create(client, title="Cubs poll", team_theme="cubs")

        body = (await client.get("/api/polls")).json()
        assert body["total"] == 2

        body = (await client.get("/api/polls", params={"team": "cubs"})).json()
        assert [p["title"] for p in body["polls"]] == ["Cubs poll"]

        body = (await client.get("/api/polls", params={"search": "bears"})).json()
        assert [p["title"] for p in body["polls"]] == ["Bears poll"]

    async def test_all_still_hides_archived(self, app, client: AsyncClient):
        await _create(client, title="Live poll")
        async with get_session(app.state.engine) as session:
            await Repository(session).create_poll(
                [{"option_text": "A"}, {"option_text": "B"}],
                title="Old poll",
                question="q",
                status="archived",
            )

        body = (await client.get("/api/polls", params={"status": "all"})).json()
        assert [p["title"] for p in body["polls"]] == ["Live poll"]

        body = (await client.get("/api/polls", params={"status": "all", "archived": "true"})).json()
        assert body["total"] == 2

    async def test_get_missing(self, client: AsyncClient):
        resp = await client.get("/api/polls/999")
        assert resp.status_code == 404


class TestVote:
    async def test_anonymous_vote_and_percentages(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        first, second = poll["options"][0]["id"], poll["options"][1]["id"]

        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": [first], "anon_id": "a1"}
        )
        assert resp.status_code == 200
        await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": [second], "anon_id": "a2"}
        )
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": [first], "anon_id": "a3"}
        )
        result = resp.json()["poll"]
        assert result["total_votes"] == 3
        assert [o["percentage"] for o in result["options"]] == [67, 33, 0]

    async def test_one_ballot_per_voter(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        option = poll["options"][0]["id"]
        url = f"/api/polls/{poll['id']}/vote"
        await client.post(url, json={"option_ids": [option], "anon_id": "a1"})
        resp = await client.post(url, json={"option_ids": [option], "anon_id": "a1"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "You have already voted in this poll"}

    async def test_concurrent_second_ballot_rejected(self, client: AsyncClient, monkeypatch):
        poll = (await _create(client))["poll"]
        first, second = poll["options"][0]["id"], poll["options"][1]["id"]
        url = f"/api/polls/{poll['id']}/vote"
        await client.post(url, json={"option_ids": [first], "anon_id": "a1"})

        # Both requests passed the has-voted check before either stored a ballot.
        monkeypatch.setattr(Repository, "has_voted", AsyncMock(return_value=False))
        resp = await client.post(url, json={"option_ids": [second], "anon_id": "a1"})
        assert resp.status_code == 400

        result = (await client.get(f"/api/polls/{poll['id']}")).json()["poll"]
        assert result["total_votes"] == 1
        assert [o["vote_count"] for o in result["options"]] == [1, 0, 0]

    async def test_signed_in_user_keyed_by_account(self, client: AsyncClient, settings):
        poll = (await _create(client))["poll"]
        option = poll["options"][0]["id"]
        url = f"/api/polls/{poll['id']}/vote"
        client.cookies.update(session_cookies(settings))
        assert (await client.post(url, json={"option_ids": [option], "anon_id": "x"})).status_code == 200
        resp = await client.post(url, json={"option_ids": [option], "anon_id": "y"})
        assert resp.status_code == 400

    async def test_anonymous_needs_id(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": [poll["options"][0]["id"]]}
        )
        assert resp.status_code == 400

    async def test_single_select_rejects_many(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        ids = [o["id"] for o in poll["options"][:2]]
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": ids, "anon_id": "a1"}
        )
        assert resp.status_code == 400

    async def test_multi_select_counts_one_voter(self, client: AsyncClient):
        poll = (await _create(client, poll_type="multiple"))["poll"]
        ids = [o["id"] for o in poll["options"][:2]]
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": ids, "anon_id": "a1"}
        )
        result = resp.json()["poll"]
        assert result["total_votes"] == 1
        assert [o["vote_count"] for o in result["options"]] == [1, 1, 0]
        assert [o["percentage"] for o in result["options"]] == [100, 100, 0]

    async def test_foreign_option(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote", json={"option_ids": [9999], "anon_id": "a1"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid option"}

    async def test_scheduled_poll_closed(self, client: AsyncClient):
        later = (datetime.now(UTC) + timedelta(days=1)).isoformat()
        poll = (await _create(client, starts_at=later))["poll"]
        resp = await client.post(
            f"/api/polls/{poll['id']}/vote",
            json={"option_ids": [poll["options"][0]["id"]], "anon_id": "a1"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Poll is not active"}

    async def test_empty_ballot(self, client: AsyncClient):
        poll = (await _create(client))["poll"]
        resp = await client.post(f"/api/polls/{poll['id']}/vote", json={"option_ids": [], "anon_id": "a"})
        assert resp.status_code == 400
