from fastapi.testclient import TestClient

from app.core.config import settings


def test_health_check_pings_database(client: TestClient) -> None:
    r = client.get(f"{settings.API_V1_STR}/utils/health-check/")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok"}
