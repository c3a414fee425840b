"""Shared test configuration and fixtures."""

import os
import tempfile

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from stockwatch.ormdb import models  # noqa: F401
from stockwatch.ormdb.database import Base, _configure_sqlite
from stockwatch.ormdb.models import Instrument

SEED_INSTRUMENTS = [
    {
        "ts_code": "600000.SH",
        "symbol": "600000",
        "name": "浦发银行",
        "area": "上海",
        "industry": "银行",
        "market": "主板",
        "list_date": "19991110",
    },
    {
        "ts_code": "000001.SZ",
        "symbol": "000001",
        "name": "平安银行",
        "area": "深圳",
        "industry": "银行",
        "market": "主板",
        "list_date": "19910403",
    },
    {
        "ts_code": "430047.BJ",
        "symbol": "430047",
        "name": "诺思兰德",
        "area": "北京",
        "industry": "生物制药",
        "market": "北交所",
        "list_date": "20201208",
    },
]

# Present in the catalog but no longer listed
DELISTED_INSTRUMENT = {
    "ts_code": "600001.SH",
    "symbol": "600001",
    "name": "邯郸钢铁",
    "area": "河北",
    "industry": "普钢",
    "market": "主板",
    "list_date": "19980122",
}


@pytest.fixture
def isolated_db():
    """Create an isolated database for testing."""
    temp_fd, temp_path = tempfile.mkstemp(suffix=".db")
    db_url = f"sqlite:///{temp_path}"

    engine = create_engine(
        db_url, connect_args={"check_same_thread": False, "timeout": 30}
    )
    event.listen(engine, "connect", _configure_sqlite)
    SessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )

    Base.metadata.create_all(bind=engine)

    try:
        yield {
            "engine": engine,
            "session_factory": SessionLocal,
            "db_url": db_url,
            "db_path": temp_path,
        }
    finally:
        engine.dispose()
        os.close(temp_fd)
        for suffix in ("", "-wal", "-shm"):
            if os.path.exists(temp_path + suffix):
                os.unlink(temp_path + suffix)


@pytest.fixture
def session_factory(isolated_db):
    """Session factory bound to the isolated database."""
    return isolated_db["session_factory"]


@pytest.fixture
def seeded_catalog(session_factory):
    """Catalog with three active instruments and one delisted one."""
    with session_factory() as session:
        for fields in SEED_INSTRUMENTS:
            session.add(Instrument(fingerprint="seed", is_active=True, **fields))
        session.add(Instrument(fingerprint="seed", is_active=False, **DELISTED_INSTRUMENT))
        session.commit()

    return [fields["ts_code"] for fields in SEED_INSTRUMENTS]


@pytest.fixture(autouse=True)
def clean_settings_cache():
    """Clear the settings cache between tests to avoid state pollution."""
    from stockwatch.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Keep tests away from real upstreams, log files and data directories."""
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("LOG_FILE_ENABLED", "false")
    monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path / "data"))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'unused.db'}")
    monkeypatch.setenv("ALERT_WEBHOOK_URL", "")
    monkeypatch.setenv("TUSHARE_TOKEN", "test_tushare_token")
    monkeypatch.setenv("ENDPOINT_AUTH_TOKEN", "test_endpoint_token")
