"""API tests for application submission, listing and statistics."""

import json
import uuid
from pathlib import Path

from fastapi.testclient import TestClient
from sqlmodel import Session

from app.core.config import BACKEND_ROOT, settings
from tests.utils.application import (
    application_files,
    application_form,
    create_random_application,
)
from tests.utils.utils import random_lower_string

API = settings.API_V1_STR


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmitApplication:
    """POST /applications/"""

    def test_submit_succeeds(
        self, client: TestClient, normal_user_token_headers: dict[str, str]
    ) -> None:
        form = application_form()
        r = client.post(f"{API}/applications/", data=form, files=application_files())
        assert r.status_code == 200, r.text
        content = r.json()
        assert content["success"] is True
        assert content["message"] == "Application submitted successfully!"
        application_id = content["applicationId"]

        r = client.get(
            f"{API}/applications/{application_id}", headers=normal_user_token_headers
        )
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["application"]["remita_rrr"] == form["remita_rrr"]
        assert data["application"]["middlename"] == "Grace"
        assert data["application_hash"]["status"] == "pending"
        assert data["application_hash"]["approved_by"] is None
        assert data["approver_name"] is None

    def test_uploads_are_stored(
        self, client: TestClient, normal_user_token_headers: dict[str, str]
    ) -> None:
        r = client.post(
            f"{API}/applications/", data=application_form(), files=application_files()
        )
        application_id = r.json()["applicationId"]
        r = client.get(
            f"{API}/applications/{application_id}", headers=normal_user_token_headers
        )
        application = r.json()["data"]["application"]
        assert application["certificate_file"].startswith("/uploads/certificates/")
        assert application["payment_receipt_file"].startswith("/uploads/receipts/")
        stored = Path(settings.UPLOADS_DIR) / application["certificate_file"].removeprefix(
            "/uploads/"
        )
        assert stored.read_bytes().startswith(b"%PDF")
        assert BACKEND_ROOT not in stored.resolve().parents

        served = client.get(application["certificate_file"])
        assert served.status_code == 200
        assert served.content == stored.read_bytes()

    def test_blank_required_fields(self, client: TestClient) -> None:
        form = application_form(surname="   ", department="")
        r = client.post(f"{API}/applications/", data=form, files=application_files())
        assert r.status_code == 400
        content = r.json()
        assert content["success"] is False
        assert content["status"] is False
        assert content["error"] == "Validation failed. Please check the highlighted fields."
        assert set(content["fieldErrors"]) >= {"surname", "department"}

    def test_email_postage_needs_recipient_email(self, client: TestClient) -> None:
        form = application_form(mode_of_postage="email", recipient_email="")
        r = client.post(f"{API}/applications/", data=form, files=application_files())
        assert r.status_code == 400
        assert "recipient_email" in r.json()["fieldErrors"]

    def test_delivery_needs_recipient_address(self, client: TestClient) -> None:
        form = application_form(mode_of_postage="delivery", recipient_address="")
        r = client.post(f"{API}/applications/", data=form, files=application_files())
        assert r.status_code == 400
        assert "recipient_address" in r.json()["fieldErrors"]

    def test_missing_files(self, client: TestClient) -> None:
        r = client.post(f"{API}/applications/", data=application_form())
        assert r.status_code == 400
        field_errors = r.json()["fieldErrors"]
        assert "certificate_file" in field_errors
        assert "payment_receipt_file" in field_errors

    def test_unsupported_file_type(self, client: TestClient) -> None:
        files = application_files()
        files["certificate_file"] = ("notes.txt", b"plain text", "text/plain")
        r = client.post(f"{API}/applications/", data=application_form(), files=files)
        assert r.status_code == 400
        assert "certificate_file" in r.json()["fieldErrors"]

    def test_empty_file(self, client: TestClient) -> None:
        files = application_files()
        files["payment_receipt_file"] = ("receipt.pdf", b"", "application/pdf")
        r = client.post(f"{API}/applications/", data=application_form(), files=files)
        assert r.status_code == 400
        assert "payment_receipt_file" in r.json()["fieldErrors"]

    def test_duplicate_rrr(self, client: TestClient) -> None:
        form = application_form()
        first = client.post(f"{API}/applications/", data=form, files=application_files())
        assert first.status_code == 200

        duplicate = application_form(remita_rrr=form["remita_rrr"])
        r = client.post(
            f"{API}/applications/", data=duplicate, files=application_files()
        )
        assert r.status_code == 409
        assert "Remita RRR" in r.json()["error"]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListApplications:
    """GET /applications/"""

    def test_requires_authentication(self, client: TestClient) -> None:
        r = client.get(f"{API}/applications/")
        assert r.status_code in {401, 403}
        assert r.json()["status"] is False

    def test_pagination_meta(
        self,
        client: TestClient,
        normal_user_token_headers: dict[str, str],
        db: Session,
    ) -> None:
        department = random_lower_string()
        for _ in range(3):
            create_random_application(db, department=department)
        filters = json.dumps([{"field": "department", "value": department}])

        r = client.get(
            f"{API}/applications/",
            headers=normal_user_token_headers,
            params={"page": 2, "pageSize": 2, "filters": filters},
        )
        assert r.status_code == 200
        content = r.json()
        assert content["status"] is True
        assert len(content["data"]) == 1
        assert content["meta"] == {
            "totalItems": 3,
            "totalPages": 2,
            "currentPage": 2,
            "pageSize": 2,
        }
        row = content["data"][0]
        assert row["application"]["department"] == department
        assert row["application_hash"]["application_id"] == row["application"]["id"]

    def test_pagination_is_clamped(
        self, client: TestClient, normal_user_token_headers: dict[str, str]
    ) -> None:
        r = client.get(
            f"{API}/applications/",
            headers=normal_user_token_headers,
            params={"page": 0, "pageSize": 1000},
        )
        assert r.status_code == 200
        meta = r.json()["meta"]
        assert meta["currentPage"] == 1
        assert meta["pageSize"] == 100

    def test_status_filter(
        self, client: TestClient, normal_user_token_headers: dict[str, str]
    ) -> None:
        r = client.get(
            f"{API}/applications/",
            headers=normal_user_token_headers,
            params={"filters": json.dumps([{"field": "status", "value": "pending"}])},
        )
        assert r.status_code == 200
        assert all(
            row["application_hash"]["status"] == "pending" for row in r.json()["data"]
        )

    def test_malformed_filters(
        self, client: TestClient, normal_user_token_headers: dict[str, str]
    ) -> None:
        r = client.get(
            f"{API}/applications/",
            headers=normal_user_token_headers,
            params={"filters": "status=pending"},
        )
        assert r.status_code == 400
        assert r.json()["error"] == "filters must be a JSON array"


# ---------------------------------------------------------------------------
# Detail and statistics
# ---------------------------------------------------------------------------


def test_read_application_not_found(
    client: TestClient, normal_user_token_headers: dict[str, str]
) -> None:
    r = client.get(
        f"{API}/applications/{uuid.uuid4()}", headers=normal_user_token_headers
    )
    assert r.status_code == 404
    assert r.json() == {
        "status": False,
        "success": False,
        "error": "Application not found",
    }


def test_read_application_requires_authentication(
    client: TestClient, db: Session
) -> None:
    record = create_random_application(db)
    r = client.get(f"{API}/applications/{record.application.id}")
    assert r.status_code in {401, 403}


def test_stats_for_officer(
    client: TestClient, normal_user_token_headers: dict[str, str]
) -> None:
    r = client.get(f"{API}/applications/stats", headers=normal_user_token_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert set(data) == {"total", "pending", "approved"}
    assert data["total"] >= data["pending"] + data["approved"]


def test_stats_for_admin_include_users(
    client: TestClient, superuser_token_headers: dict[str, str]
) -> None:
    r = client.get(f"{API}/applications/stats", headers=superuser_token_headers)
    assert r.status_code == 200
    assert r.json()["data"]["totalUsers"] >= 1
