"""API tests for the incident lifecycle in heuristic mode (no inference API)."""

import pytest
import pytest_asyncio

pytestmark = pytest.mark.asyncio


async def report(client, headers, title="VPN keeps dropping", description="Disconnects every hour", **extra):
    resp = await client.post("/api/incidents", json={"title": title, "description": description, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest_asyncio.fixture
async def people(create_user):
    """An employee, a second employee, a responder and an admin."""
    employee, employee_h = await create_user("emp@example.com", name="Erin")
    other, other_h = await create_user("other@example.com", name="Omar")
    responder, responder_h = await create_user("resp@example.com", role="responder", name="Riley")
    admin, admin_h = await create_user("admin@example.com", role="admin", name="Ada")
    return {
        "employee": (employee, employee_h),
        "other": (other, other_h),
        "responder": (responder, responder_h),
        "admin": (admin, admin_h),
    }


class TestCreateIncident:
    async def test_created_open_without_routing(self, client, people):
        employee, headers = people["employee"]

        body = await report(client, headers, title="Email not syncing", description="Outlook stuck on old mail")
        incident = body["incident"]

        assert incident["status"] == "Open"
        assert incident["reportedBy"] == employee.id
        assert incident["reporterName"] == "Erin"
        assert incident["assignedTeam"] is None
        assert incident["category"] == "IT"
        assert [h["toStatus"] for h in incident["statusHistory"]] == ["Open"]
        assert incident["statusHistory"][0]["fromStatus"] is None
        assert incident["activity"][0]["type"] == "created"
        assert "embedding" not in incident

        insights = body["aiInsights"]
        assert insights["triage"]["aiPowered"] is False
        assert insights["duplicateWarning"] is None
        assert len(insights["aiGeneratedSolutions"]) == 3

    async def test_supplied_category_and_severity_win(self, client, people):
        _, headers = people["employee"]
        body = await report(client, headers, title="Server outage", description="All down",
                            category="Facility", severity="Medium")
        assert body["incident"]["category"] == "Facility"
        assert body["incident"]["severity"] == "Medium"

    async def test_severity_predicted_when_omitted(self, client, people):
        _, headers = people["employee"]
        body = await report(client, headers, title="Production outage", description="Site is down")
        assert body["incident"]["severity"] == "Critical"
        assert body["incident"]["aiTriageData"]["predictedSeverity"] == "critical"

    async def test_duplicate_warning_for_identical_report(self, client, people):
        _, headers = people["employee"]
        first = await report(client, headers)
        second = await report(client, headers)

        warning = second["aiInsights"]["duplicateWarning"]
        assert warning["duplicates"][0]["incidentId"] == first["incident"]["id"]
        assert warning["duplicates"][0]["similarity"] == 1.0
        assert warning["aiPowered"] is False

    async def test_missing_title_is_bad_request(self, client, people):
        _, headers = people["employee"]
        resp = await client.post("/api/incidents", json={"description": "no title"}, headers=headers)
        assert resp.status_code == 400

    async def test_invalid_category_is_bad_request(self, client, people):
        _, headers = people["employee"]
        resp = await client.post("/api/incidents", json={
            "title": "t", "description": "d", "category": "Network"
        }, headers=headers)
        assert resp.status_code == 400


class TestReadAccess:
    async def test_listing_scoped_by_role(self, client, people):
        _, employee_h = people["employee"]
        _, other_h = people["other"]
        _, responder_h = people["responder"]
        _, admin_h = people["admin"]

        mine = (await report(client, employee_h, title="Mine"))["incident"]
        await report(client, other_h, title="Theirs")

        assert [i["id"] for i in (await client.get("/api/incidents", headers=employee_h)).json()] == [mine["id"]]
        assert len((await client.get("/api/incidents", headers=admin_h)).json()) == 2
        assert (await client.get("/api/incidents", headers=responder_h)).json() == []

    async def test_status_filter(self, client, people):
        _, employee_h = people["employee"]
        _, admin_h = people["admin"]
        await report(client, employee_h)

        assert len((await client.get("/api/incidents?status=Open", headers=admin_h)).json()) == 1
        assert (await client.get("/api/incidents?status=Resolved", headers=admin_h)).json() == []

    async def test_other_employee_forbidden(self, client, people):
        _, employee_h = people["employee"]
        _, other_h = people["other"]
        incident = (await report(client, employee_h))["incident"]

        assert (await client.get(f"/api/incidents/{incident['id']}", headers=other_h)).status_code == 403
        assert (await client.get(f"/api/incidents/{incident['id']}", headers=employee_h)).status_code == 200

    async def test_unknown_incident(self, client, people):
        _, admin_h = people["admin"]
        resp = await client.get("/api/incidents/00000000-0000-0000-0000-000000000000", headers=admin_h)
        assert resp.status_code == 404
        assert (await client.get("/api/incidents/not-a-uuid", headers=admin_h)).status_code == 404

    async def test_my_incidents_and_assigned(self, client, people):
        responder, responder_h = people["responder"]
        _, employee_h = people["employee"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        await client.patch(f"/api/incidents/{incident['id']}/assign",
                           json={"assigneeId": responder.id}, headers=admin_h)

        assert len((await client.get("/api/incidents/my-incidents", headers=employee_h)).json()) == 1
        assigned = (await client.get("/api/incidents/assigned", headers=responder_h)).json()
        assert [i["id"] for i in assigned] == [incident["id"]]


class TestStatusWorkflow:
    async def test_employee_cannot_change_status(self, client, people):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/status",
                                  json={"status": "Investigating"}, headers=employee_h)
        assert resp.status_code == 403

    async def test_full_lifecycle(self, client, people):
        _, employee_h = people["employee"]
        responder, responder_h = people["responder"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]
        await client.patch(f"/api/incidents/{incident['id']}/assign", json={"assignedTo": responder.id}, headers=admin_h)
        url = f"/api/incidents/{incident['id']}/status"

        resp = await client.patch(url, json={"status": "Investigating"}, headers=responder_h)
        assert resp.status_code == 200
        assert resp.json()["status"] == "Investigating"

        resp = await client.patch(url, json={"status": "Resolved", "note": "Replaced VPN profile"}, headers=responder_h)
        body = resp.json()
        assert body["status"] == "Resolved"
        assert body["resolution"] == "Replaced VPN profile"
        assert [h["toStatus"] for h in body["statusHistory"]] == ["Open", "Investigating", "Resolved"]
        assert body["statusHistory"][-1]["changedBy"] == responder.id

        assert (await client.patch(url, json={"status": "Open"}, headers=responder_h)).status_code == 400

    async def test_unrelated_responder_gets_acknowledgement(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/status",
                                  json={"status": "Investigating"}, headers=responder_h)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Status is Investigating"}

        employee_view = (await client.get(f"/api/incidents/{incident['id']}", headers=employee_h)).json()
        assert employee_view["status"] == "Investigating"

    async def test_skipping_investigating_rejected(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/status",
                                  json={"status": "Resolved"}, headers=responder_h)
        assert resp.status_code == 400

    async def test_same_status_is_noop(self, client, people):
        _, employee_h = people["employee"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/status",
                                  json={"status": "Open"}, headers=admin_h)
        assert resp.status_code == 200
        assert len(resp.json()["statusHistory"]) == 1
        assert len(resp.json()["activity"]) == 1

    async def test_invalid_status_value(self, client, people):
        _, employee_h = people["employee"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/status",
                                  json={"status": "Closed"}, headers=admin_h)
        assert resp.status_code == 400


class TestComments:
    async def test_internal_comments_hidden_from_employee(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        incident = (await report(client, employee_h))["incident"]
        url = f"/api/incidents/{incident['id']}/comments"

        resp = await client.post(url, json={"text": "Looks like the cert expired", "isInternal": True}, headers=responder_h)
        assert resp.status_code == 201
        await client.post(url, json={"content": "We are on it"}, headers=responder_h)

        employee_view = (await client.get(f"/api/incidents/{incident['id']}", headers=employee_h)).json()
        assert [c["text"] for c in employee_view["comments"]] == ["We are on it"]
        assert all("cert expired" not in str(a["meta"]) for a in employee_view["activity"])

        activity = (await client.get(f"/api/incidents/{incident['id']}/activity", headers=employee_h)).json()
        assert [a["type"] for a in activity] == ["created", "comment"]

    async def test_employee_cannot_post_internal(self, client, people):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(f"/api/incidents/{incident['id']}/comments",
                                 json={"text": "secret", "isInternal": True}, headers=employee_h)
        assert resp.status_code == 403

    async def test_reporter_comment(self, client, people):
        employee, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(f"/api/incidents/{incident['id']}/comments",
                                 json={"text": "Still happening"}, headers=employee_h)
        comment = resp.json()["comments"][0]
        assert comment["author"] == employee.id
        assert comment["authorName"] == "Erin"
        assert comment["isInternal"] is False
        assert resp.json()["activity"][-1]["message"] == "Erin commented"

    async def test_unrelated_responder_comment_hides_incident(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(f"/api/incidents/{incident['id']}/comments",
                                 json={"text": "Seen this on other laptops"}, headers=responder_h)
        assert resp.status_code == 201
        assert resp.json() == {"message": "Comment added"}
        assert "VPN keeps dropping" not in resp.text

        employee_view = (await client.get(f"/api/incidents/{incident['id']}", headers=employee_h)).json()
        assert [c["text"] for c in employee_view["comments"]] == ["Seen this on other laptops"]

    async def test_stranger_cannot_comment(self, client, people):
        _, employee_h = people["employee"]
        _, other_h = people["other"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(f"/api/incidents/{incident['id']}/comments",
                                 json={"text": "me too"}, headers=other_h)
        assert resp.status_code == 403

    async def test_blank_comment(self, client, people):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]
        resp = await client.post(f"/api/incidents/{incident['id']}/comments",
                                 json={"text": "   "}, headers=employee_h)
        assert resp.status_code == 400


class TestWatchAndAssign:
    async def test_watch_idempotent(self, client, people):
        _, employee_h = people["employee"]
        admin, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]
        url = f"/api/incidents/{incident['id']}/watch"

        await client.post(url, headers=admin_h)
        resp = await client.post(url, headers=admin_h)

        assert resp.status_code == 200
        assert resp.json()["watchers"] == [admin.id]
        assert sum(1 for a in resp.json()["activity"] if a["type"] == "watch") == 1

    async def test_watch_by_unrelated_responder_hides_incident(self, client, people):
        _, employee_h = people["employee"]
        responder, responder_h = people["responder"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        assert (await client.get(f"/api/incidents/{incident['id']}", headers=responder_h)).status_code == 403

        resp = await client.post(f"/api/incidents/{incident['id']}/watch", headers=responder_h)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Watching incident"}
        assert "VPN keeps dropping" not in resp.text

        # the watch itself was recorded
        admin_view = (await client.get(f"/api/incidents/{incident['id']}", headers=admin_h)).json()
        assert admin_view["watchers"] == [responder.id]

    async def test_assign(self, client, people):
        _, employee_h = people["employee"]
        responder, responder_h = people["responder"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/assign",
                                  json={"assignedTo": responder.id}, headers=admin_h)
        assert resp.status_code == 200
        assert resp.json()["assignedTo"] == responder.id
        assert resp.json()["assigneeName"] == "Riley"
        assert resp.json()["activity"][-1]["meta"] == {"assignedTo": responder.id}

        # the assignee can now read it
        assert (await client.get(f"/api/incidents/{incident['id']}", headers=responder_h)).status_code == 200

    async def test_assign_elsewhere_gets_acknowledgement(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        admin, _ = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/assign",
                                  json={"assignedTo": admin.id}, headers=responder_h)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Incident assigned"}

    async def test_assign_unknown_user(self, client, people):
        _, employee_h = people["employee"]
        _, admin_h = people["admin"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/assign",
                                  json={"assigneeId": "00000000-0000-0000-0000-000000000001"}, headers=admin_h)
        assert resp.status_code == 404

    async def test_employee_cannot_assign(self, client, people):
        employee, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.patch(f"/api/incidents/{incident['id']}/assign",
                                  json={"assigneeId": employee.id}, headers=employee_h)
        assert resp.status_code == 403


class TestAttachments:
    async def test_upload(self, client, people, upload_dir):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(
            f"/api/incidents/{incident['id']}/attachments",
            files={"file": ("screenshot.png", b"\x89PNG fake image", "image/png")},
            headers=employee_h
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["filename"] == "screenshot.png"
        assert body["url"].startswith("/uploads/")
        assert body["url"].endswith("-screenshot.png")

        stored = upload_dir / body["url"].rsplit("/", 1)[-1]
        assert stored.read_bytes() == b"\x89PNG fake image"

        detail = (await client.get(f"/api/incidents/{incident['id']}", headers=employee_h)).json()
        assert detail["attachments"][0]["url"] == body["url"]
        assert detail["activity"][-1]["message"] == "Attachment uploaded: screenshot.png"

    async def test_empty_upload(self, client, people):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(
            f"/api/incidents/{incident['id']}/attachments",
            files={"file": ("empty.txt", b"", "text/plain")},
            headers=employee_h
        )
        assert resp.status_code == 400

    async def test_missing_file(self, client, people):
        _, employee_h = people["employee"]
        incident = (await report(client, employee_h))["incident"]

        resp = await client.post(
            f"/api/incidents/{incident['id']}/attachments",
            data={"note": "no file here"},
            headers=employee_h
        )
        assert resp.status_code == 400


class TestMetrics:
    async def test_dashboard_aggregates(self, client, people):
        _, employee_h = people["employee"]
        _, responder_h = people["responder"]
        incident = (await report(client, employee_h, severity="High"))["incident"]
        await report(client, employee_h, title="Second", description="Another one", severity="Low")

        url = f"/api/incidents/{incident['id']}/status"
        await client.patch(url, json={"status": "Investigating"}, headers=responder_h)
        await client.patch(url, json={"status": "Resolved"}, headers=responder_h)

        resp = await client.get("/api/incidents/metrics", headers=employee_h)
        assert resp.status_code == 200
        metrics = resp.json()

        assert len(metrics["volume"]) == 7
        assert metrics["volume"][-1]["count"] == 2
        assert metrics["total"] == 2
        assert metrics["mttr"] >= 0
        assert {s["status"]: s["count"] for s in metrics["byStatus"]} == {"Open": 1, "Resolved": 1}
        assert {s["severity"]: s["count"] for s in metrics["bySeverity"]} == {"High": 1, "Low": 1}
        assert len(metrics["forecast"]["nextDays"]) == 7
        assert metrics["anomalies"]["count"] <= metrics["total"]


class TestHealth:
    async def test_health_reports_heuristic_mode(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["checks"]["inference"] == "heuristic_mode"
        assert resp.json()["requests"]["requests"] >= 0

    async def test_correlation_id_echoed_in_errors(self, client):
        resp = await client.get("/api/incidents", headers={"X-Correlation-ID": "trace-123"})
        assert resp.status_code == 401
        assert resp.headers["X-Correlation-ID"] == "trace-123"
        assert resp.json()["correlation_id"] == "trace-123"
