"""
HTTP API flows
"""
from pathlib import Path

from app.core.config import settings

BUNDLED_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"


async def open_week(client, headers, week_number=42):
    response = await client.get(f"/api/v1/reports/week/2024/{week_number}", headers=headers)
    assert response.status_code == 200
    return response.json()


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert "Berichtsheft" in response.json()["message"]


class TestAuth:
    async def test_register_and_login(self, client):
        payload = {
            "email": "lena@example.com", "password": "geheim123", "role": "azubi",
            "first_name": "Lena", "last_name": "Meier", "company": "Muster GmbH",
        }
        response = await client.post("/auth/register", json=payload)
        assert response.status_code == 201
        assert response.json()["role"] == "azubi"

        duplicate = await client.post("/auth/register", json=payload)
        assert duplicate.status_code == 409

        token = await client.post("/auth/token", data={"username": "lena@example.com", "password": "geheim123"})
        assert token.status_code == 200
        headers = {"Authorization": f"Bearer {token.json()['access_token']}"}

        me = await client.get("/api/v1/users/me", headers=headers)
        assert me.json()["email"] == "lena@example.com"

    async def test_wrong_password(self, client, trainee):
        response = await client.post("/auth/token", data={"username": trainee.email, "password": "falsch"})
        assert response.status_code == 401

    async def test_requires_token(self, client):
        response = await client.get("/api/v1/reports")
        assert response.status_code == 401


class TestSignature:
    async def test_set_and_clear(self, client, trainee_headers):
        response = await client.put("/api/v1/users/me/signature", json={"signature": "A. Schmidt"}, headers=trainee_headers)
        assert response.json()["signature"] == "A. Schmidt"

        response = await client.delete("/api/v1/users/me/signature", headers=trainee_headers)
        assert response.json()["signature"] is None

    async def test_empty_signature(self, client, trainee_headers):
        response = await client.put("/api/v1/users/me/signature", json={"signature": "  "}, headers=trainee_headers)
        assert response.status_code == 422

    async def test_overlong_signature(self, client, trainee_headers):
        response = await client.put(
            "/api/v1/users/me/signature", json={"signature": "A" * 101}, headers=trainee_headers
        )
        assert response.status_code == 422

        response = await client.put(
            "/api/v1/users/me/signature", json={"signature": "A" * 100}, headers=trainee_headers
        )
        assert response.status_code == 200

    async def test_overlong_name_rejected(self, client):
        payload = {"email": "lang@example.com", "password": "geheim123", "role": "azubi", "first_name": "L" * 101}
        response = await client.post("/auth/register", json=payload)
        assert response.status_code == 422


class TestReportFlow:
    async def test_edit_submit_review(self, client, trainee_headers, trainer_headers):
        report = await open_week(client, trainee_headers)
        assert report["status"] == "draft"
        assert report["can_edit"] is True
        assert report["week_date_range"] == "14.10. - 20.10.2024"
        report_id = report["id"]

        response = await client.put(
            f"/api/v1/reports/{report_id}/activities",
            json={"activities": [{"day_of_week": 1, "activity_text": "Kundenberatung"}]},
            headers=trainee_headers,
        )
        assert [a["activity_text"] for a in response.json()] == ["Kundenberatung"]

        response = await client.put(
            f"/api/v1/reports/{report_id}/hours/1", json={"hours": 7, "minutes": 30}, headers=trainee_headers
        )
        assert response.status_code == 200

        detail = (await client.get(f"/api/v1/reports/{report_id}", headers=trainee_headers)).json()
        assert detail["total_hours"] == 7.5
        assert len(detail["activities"]) == 1

        submitted = await client.post(f"/api/v1/reports/{report_id}/submit", headers=trainee_headers)
        assert submitted.json()["status"] == "submitted"
        assert submitted.json()["trainee_signature"] == "Anna Schmidt"

        locked = await client.put(
            f"/api/v1/reports/{report_id}/hours/2", json={"hours": 8}, headers=trainee_headers
        )
        assert locked.status_code == 409

        pending = await client.get("/api/v1/reports", params={"status": "submitted"}, headers=trainer_headers)
        assert [r["id"] for r in pending.json()] == [report_id]

        feedback = await client.post(
            f"/api/v1/reports/{report_id}/feedback",
            json={
                "feedback_type": "correction",
                "message": "Bitte Dienstag ergänzen",
                "field_corrections": [{"field": "tuesday", "message": "Fehlt"}],
            },
            headers=trainer_headers,
        )
        assert feedback.status_code == 201

        detail = (await client.get(f"/api/v1/reports/{report_id}", headers=trainee_headers)).json()
        assert detail["status"] == "needs_correction"
        assert detail["feedback"][0]["field_corrections"] == [{"field": "tuesday", "message": "Fehlt"}]

    async def test_trainee_cannot_give_feedback(self, client, trainee_headers):
        report = await open_week(client, trainee_headers)
        await client.post(f"/api/v1/reports/{report['id']}/submit", headers=trainee_headers)

        response = await client.post(
            f"/api/v1/reports/{report['id']}/feedback",
            json={"feedback_type": "approval", "message": "Selbst genehmigt"},
            headers=trainee_headers,
        )
        assert response.status_code == 403

    async def test_trainer_cannot_open_week(self, client, trainer_headers):
        response = await client.get("/api/v1/reports/week/2024/42", headers=trainer_headers)
        assert response.status_code == 403

    async def test_week_out_of_range(self, client, trainee_headers):
        response = await client.get("/api/v1/reports/week/2024/60", headers=trainee_headers)
        assert response.status_code == 422

    async def test_unknown_report(self, client, trainee_headers):
        response = await client.get("/api/v1/reports/999", headers=trainee_headers)
        assert response.status_code == 404


class TestExportEndpoints:
    async def test_pdf_download(self, client, trainee_headers):
        report = await open_week(client, trainee_headers)

        response = await client.get(f"/api/v1/reports/{report['id']}/export", headers=trainee_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Wochenbericht_KW42_2024.pdf" in response.headers["content-disposition"]
        assert "x-export-degraded" not in response.headers
        assert response.content.startswith(b"%PDF")

    async def test_broken_template_degrades(self, client, trainee_headers):
        report = await open_week(client, trainee_headers)

        response = await client.get(
            f"/api/v1/reports/{report['id']}/export",
            params={"format": "docx", "template": "vorlage.odt"},
            headers=trainee_headers,
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "x-export-degraded" in response.headers

    async def test_export_all_needs_approved_reports(self, client, trainee_headers):
        response = await client.get("/api/v1/reports/export/all", headers=trainee_headers)
        assert response.status_code == 404


class TestTemplates:
    async def test_parameters(self, client, trainee_headers, monkeypatch):
        monkeypatch.setattr(settings, "TEMPLATE_DIR", str(BUNDLED_TEMPLATES))

        response = await client.get(
            "/api/v1/templates/parameters", params={"template": "wochenbericht_vorlage.txt"}, headers=trainee_headers
        )

        body = response.json()
        assert body["kind"] == "text"
        assert body["parameters"][:3] == ["userName", "userCompany", "weekNumber"]

    async def test_unsupported_template(self, client, trainee_headers):
        response = await client.get(
            "/api/v1/templates/parameters", params={"template": "vorlage.odt"}, headers=trainee_headers
        )
        assert response.status_code == 422


async def test_predefined_activities(client, trainee_headers):
    response = await client.get("/api/v1/activities/predefined", headers=trainee_headers)
    names = [a["name"] for a in response.json()]
    assert len(names) == 10
    assert "Kundenberatung" in names


class TestDashboard:
    async def test_trainee_stats(self, client, trainee_headers):
        report = await open_week(client, trainee_headers)
        await client.put(f"/api/v1/reports/{report['id']}/hours/1", json={"hours": 8}, headers=trainee_headers)

        stats = (await client.get("/api/v1/dashboard/me", headers=trainee_headers)).json()

        assert stats["total_reports"] == 1
        assert stats["status_counts"]["draft"] == 1
        assert stats["total_hours"] == 8.0

    async def test_review_queue(self, client, trainee_headers, trainer_headers):
        report = await open_week(client, trainee_headers)
        await client.post(f"/api/v1/reports/{report['id']}/submit", headers=trainee_headers)

        overview = (await client.get("/api/v1/dashboard/reviews", headers=trainer_headers)).json()

        assert overview["status_counts"]["submitted"] == 1
        assert overview["pending"][0]["trainee_name"] == "Anna Schmidt"

    async def test_reviews_require_trainer(self, client, trainee_headers):
        response = await client.get("/api/v1/dashboard/reviews", headers=trainee_headers)
        assert response.status_code == 403
