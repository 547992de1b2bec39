import os
os.environ["APP_ENV"] = "test"

# THEN import anything else
import base64
import shutil
import tempfile
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import httpx
import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

import listing_sync.db.session as db_session_module
from listing_sync.db.session import get_db
from listing_sync.models.listing import Listing
from listing_sync.providers.google_business import GoogleBusinessClient
from listing_sync.providers.rate_limiter import ProviderRateLimiter


MASTER_KEY_B64 = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode("ascii")


def _run_alembic_upgrade(backend_dir: Path, database_url: str) -> None:
    cfg = Config(str(backend_dir / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> Generator[Path, None, None]:
    backend_dir = Path(__file__).resolve().parents[1]
    temp_dir = Path(tempfile.mkdtemp(prefix="pytest-db-"))
    template_db_path = temp_dir / f"template-{uuid.uuid4().hex}.sqlite3"
    database_url = f"sqlite:///{template_db_path.as_posix()}"
    os.environ["POSTGRES_DSN"] = database_url

    from listing_sync.core.config import get_settings

    get_settings.cache_clear()
    db_session_module.reset_engine_state()
    _run_alembic_upgrade(backend_dir, database_url)
    verification_engine = create_engine(database_url, connect_args={"check_same_thread": False}, poolclass=NullPool)
    try:
        has_audits = inspect(verification_engine).has_table("listing_audits")
    finally:
        verification_engine.dispose()
    if not has_audits:
        raise RuntimeError("Alembic migration parity check failed; missing table: listing_audits")
    yield template_db_path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(autouse=True)
def _set_master_key(monkeypatch) -> None:
    monkeypatch.setenv("CREDENTIAL_MASTER_KEY", MASTER_KEY_B64)


@pytest.fixture()
def db_session(apply_migrations: Path) -> Generator[Session, None, None]:
    test_db_path = apply_migrations.parent / f"{uuid.uuid4().hex}.sqlite3"
    shutil.copy2(apply_migrations, test_db_path)
    engine = create_engine(
        f"sqlite:///{test_db_path.as_posix()}",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=NullPool,
    )
    test_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    test_session = test_session_local()

    # Eager Celery tasks open their own sessions against the same test DB.
    db_session_module.bind_session_factory_for_tests(test_session_local)

    yield test_session
    test_session.close()
    engine.dispose()
    db_session_module.reset_engine_state()
    for _ in range(5):
        try:
            test_db_path.unlink(missing_ok=True)
            break
        except PermissionError:
            time.sleep(0.05)


class FakeGoogleApi:
    """httpx transport handler keyed by (method, path); the last queued response for a route repeats."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == method and request.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Not routed", "status": "NOT_FOUND"}})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)


@pytest.fixture()
def google_api() -> FakeGoogleApi:
    return FakeGoogleApi()


@pytest.fixture()
def google_client(google_api: FakeGoogleApi) -> GoogleBusinessClient:
    return GoogleBusinessClient(
        rate_limiter=ProviderRateLimiter(max_requests=1000, window_seconds=60),
        token_provider=lambda _listing_id: "test-token",
        transport=httpx.MockTransport(google_api),
    )


@pytest.fixture()
def make_listing(db_session: Session) -> Callable[..., Listing]:
    def _make(**overrides: Any) -> Listing:
        values: dict[str, Any] = {
            "tenant_id": str(uuid.uuid4()),
            "business_name": "Harbour Bakery",
            "google_location_name": f"locations/{uuid.uuid4().hex[:12]}",
            "google_account_id": "accounts/900",
        }
        values.update(overrides)
        listing = Listing(**values)
        db_session.add(listing)
        db_session.commit()
        db_session.refresh(listing)
        return listing

    return _make


@pytest.fixture()
def listing(make_listing) -> Listing:
    return make_listing(google_location_name="locations/123")


@pytest.fixture()
def client(db_session: Session, google_client: GoogleBusinessClient) -> Generator[TestClient, None, None]:
    from listing_sync.api.deps import get_google_client, get_google_client_factory
    from listing_sync.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_google_client] = lambda: google_client
    app.dependency_overrides[get_google_client_factory] = lambda: (lambda _db: google_client)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
