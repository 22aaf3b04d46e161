"""API tests for the AI endpoints in heuristic mode."""

import pytest

pytestmark = pytest.mark.asyncio


async def report(client, headers, title, description):
    resp = await client.post("/api/incidents", json={"title": title, "description": description}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["incident"]


class TestPredictTriage:
    async def test_keyword_prediction(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/predict-triage", json={
            "title": "Database backup failed",
            "description": "The nightly postgres backup job errored out"
        }, headers=headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        prediction = body["prediction"]
        assert prediction["category"] == "database"
        assert prediction["suggestedCategory"] == "IT"
        assert prediction["assignedTeam"] == "Database"
        assert prediction["aiPowered"] is False
        assert isinstance(prediction["categoryConfidence"], int)

    async def test_title_only_is_enough(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/predict-triage", json={"title": "Website outage"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["prediction"]["severity"] == "critical"

    async def test_empty_text_rejected(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/predict-triage", json={"title": " ", "description": ""}, headers=headers)
        assert resp.status_code == 400

    async def test_suggests_least_loaded_responder(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        responder, _ = await create_user("dba@example.com", role="responder", department="Database")
        await create_user("ops@example.com", role="responder", department="DevOps")

        resp = await client.post("/api/incidents/ai/predict-triage", json={
            "title": "SQL query slow", "description": "database query timing out"
        }, headers=headers)
        assert resp.json()["prediction"]["optimalAssigneeId"] == responder.id

    async def test_requires_authentication(self, client):
        resp = await client.post("/api/incidents/ai/predict-triage", json={"title": "x"})
        assert resp.status_code == 401


class TestGenerateAndSummarize:
    async def test_generate_solutions_defaults(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/generate-solutions", json={
            "title": "Phishing", "description": "Suspicious link clicked", "category": "security"
        }, headers=headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["aiPowered"] is False
        assert body["solutions"][0] == "Immediately isolate affected systems"

    async def test_summarize_truncates(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/summarize", json={"text": "a" * 250}, headers=headers)

        assert resp.status_code == 200
        assert resp.json()["summary"] == "a" * 200 + "..."
        assert resp.json()["aiPowered"] is False

    async def test_summarize_too_long(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/ai/summarize", json={"text": "a" * 10001}, headers=headers)
        assert resp.status_code == 400


class TestCheckDuplicate:
    async def test_matches_open_incident(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        existing = await report(client, headers, "Printer offline", "Third floor printer shows offline")

        resp = await client.post("/api/incidents/check-duplicate", json={
            "title": "Printer offline", "description": "Third floor printer shows offline"
        }, headers=headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["hasDuplicates"] is True
        assert body["duplicates"][0]["incidentId"] == existing["id"]
        assert body["recommendation"].startswith("AI found 1 similar issue(s)")

    async def test_no_incidents(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/check-duplicate", json={
            "title": "Printer offline", "description": "Third floor"
        }, headers=headers)
        assert resp.json() == {"hasDuplicates": False, "duplicates": [], "recommendation": None}

    async def test_description_required(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        resp = await client.post("/api/incidents/check-duplicate", json={"title": "x"}, headers=headers)
        assert resp.status_code == 400


class TestIncidentInsights:
    async def test_reporter_gets_insights(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        first = await report(client, headers, "Printer offline", "Third floor printer shows offline")
        second = await report(client, headers, "Printer offline", "Third floor printer shows offline")

        resp = await client.get(f"/api/incidents/{second['id']}/ai-insights", headers=headers)

        assert resp.status_code == 200
        body = resp.json()
        assert body["aiPowered"] is False
        insights = body["insights"]
        assert insights["hasSimilar"] is True
        assert [s["incidentId"] for s in insights["similarIncidents"]] == [first["id"]]
        assert insights["hasSolutions"] is True
        assert insights["aiGeneratedSolutions"]

    async def test_other_employee_forbidden(self, client, create_user):
        _, headers = await create_user("emp@example.com")
        _, other = await create_user("other@example.com")
        incident = await report(client, headers, "Printer offline", "Third floor")

        resp = await client.get(f"/api/incidents/{incident['id']}/ai-insights", headers=other)
        assert resp.status_code == 403

    async def test_unknown_incident(self, client, create_user):
        _, headers = await create_user("admin@example.com", role="admin")
        resp = await client.get("/api/incidents/00000000-0000-0000-0000-000000000000/ai-insights", headers=headers)
        assert resp.status_code == 404
