from fastapi.testclient import TestClient

from app.core.config import settings


def test_root_describes_api(client: TestClient) -> None:
    r = client.get("/")
    assert r.status_code == 200
    payload = r.json()
    assert payload["message"] == "English Proficiency Certification API"
    assert payload["openapi"] == f"{settings.API_V1_STR}/openapi.json"


def test_healthz(client: TestClient) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_openapi_root_redirect(client: TestClient) -> None:
    r = client.get("/openapi.json", follow_redirects=False)
    assert r.status_code in {307, 308}
    assert r.headers["location"] == f"{settings.API_V1_STR}/openapi.json"


def test_api_v1_docs_redirect(client: TestClient) -> None:
    r = client.get(f"{settings.API_V1_STR}/docs", follow_redirects=False)
    assert r.status_code in {307, 308}
    assert r.headers["location"] == "/docs"


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    r = client.get(f"{settings.API_V1_STR}/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"status": False, "success": False, "error": "Not Found"}
