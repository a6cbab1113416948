"""The conftest.py file serves as a means of providing fixtures for an entire directory.

Fixtures defined in a conftest.py can be used by any test in that package without needing to import them.
"""

import os
import tempfile
from typing import TYPE_CHECKING

import pytest

# Must be set before anything from learnova is imported, the config module reads them at import
os.environ["LEARNOVA_TESTING"] = "1"
os.environ["INSTANCE_DIR"] = tempfile.mkdtemp(prefix="learnova_test_")

from fastapi.testclient import TestClient  # noqa: E402

from learnova.core.config import IdentityConf, LearnovaConf, MediaConf, TokenConf  # noqa: E402
from learnova.database.handlers import CatalogHandler, TokenUsageHandler  # noqa: E402
from learnova.database.init import create_db_engine, init_db  # noqa: E402
from learnova.main import create_app  # noqa: E402
from learnova.services.credential_pool import CredentialPool  # noqa: E402
from tests.test_utils.clock import FakeClock, FakeWallClock  # noqa: E402
from tests.test_utils.identity import IDENTITY_SECRET, SIGNING_KEY  # noqa: E402
from tests.test_utils.media import make_account_confs, make_credentials  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from fastapi import FastAPI
    from sqlalchemy.engine.base import Engine
else:
    Iterator = object
    Path = object
    FastAPI = object
    Engine = object

TEST_ORIGIN = "https://learnova.example"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def engine(tmp_path: Path) -> Engine:
    """A SQLite file per test, threads need a real file to share."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(db_engine)
    return db_engine


@pytest.fixture
def usage_handler(engine: Engine) -> TokenUsageHandler:
    return TokenUsageHandler(engine)


@pytest.fixture
def catalog(engine: Engine) -> CatalogHandler:
    return CatalogHandler(engine)


@pytest.fixture
def credential_pool(fake_clock: FakeClock) -> CredentialPool:
    return CredentialPool(make_credentials(3), cooldown=300, failure_threshold=3, clock=fake_clock)


@pytest.fixture
def settings() -> LearnovaConf:
    return LearnovaConf(
        SECRET_KEY=SIGNING_KEY,
        media=MediaConf(accounts=make_account_confs(2)),
        identity=IdentityConf(jwt_secret=IDENTITY_SECRET),
        tokens=TokenConf(allowed_origins=[TEST_ORIGIN]),
    )


@pytest.fixture
def app(settings: LearnovaConf, tmp_path: Path) -> FastAPI:
    return create_app(settings=settings, instance_path=tmp_path / "instance")


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
