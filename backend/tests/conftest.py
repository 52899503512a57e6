import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlmodel import Session, delete

# Uploads must point outside the source tree before the app mounts them.
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="proficiency-uploads-")

from app.core.config import settings  # noqa: E402
from app.core.db import engine, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Application, ApplicationReviewState, User  # noqa: E402
from tests.utils.user import authentication_token_from_email  # noqa: E402
from tests.utils.utils import get_superuser_token_headers  # noqa: E402

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


@pytest.fixture(scope="session")
def db() -> Generator[Session, None, None]:
    # Ensure schema is up to date before any test touches the DB.
    command.upgrade(Config(str(ALEMBIC_INI)), "head")

    with Session(engine) as session:
        init_db(session)
        yield session
        session.execute(delete(ApplicationReviewState))
        session.execute(delete(Application))
        session.execute(delete(User))
        session.commit()


@pytest.fixture(scope="module")
def client(db: Session) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="module")
def superuser_token_headers(client: TestClient) -> dict[str, str]:
    return get_superuser_token_headers(client)


@pytest.fixture(scope="module")
def normal_user_token_headers(client: TestClient, db: Session) -> dict[str, str]:
    return authentication_token_from_email(
        client=client, email=settings.EMAIL_TEST_USER, db=db
    )
