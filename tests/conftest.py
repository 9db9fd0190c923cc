"""Pytest fixtures for sinkview tests."""

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine, text

from sinkview.config import SinkViewConfig
from sinkview.core.context import SinkViewContext
from sinkview.core.output import OutputFormat
from sinkview.logs.columns import ColumnMapping, SinkType
from sinkview.logs.registry import ProviderRegistration

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

SQLITE_SINK_DDL = """
CREATE TABLE Logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    Timestamp TEXT,
    Level VARCHAR(10),
    Exception TEXT,
    RenderedMessage TEXT,
    Properties TEXT
)
"""


def seed_rows(count: int = 25) -> list[dict]:
    """Rows as the SQLite sink writes them, one minute apart.

    Every third row up to id 21 is an Error, seven in total.
    """
    rows = []
    for i in range(1, count + 1):
        level = "Error" if i % 3 == 0 and i <= 21 else "Information"
        rows.append(
            {
                "Timestamp": (BASE_TIME + timedelta(minutes=i)).strftime("%Y-%m-%dT%H:%M:%S.%f0+00:00"),
                "Level": level,
                "Exception": "System.Exception: boom" if level == "Error" else None,
                "RenderedMessage": f"Request {i} handled",
                "Properties": f'{{"RequestId": {i}, "Path": "/api/items"}}',
            }
        )
    return rows


def create_sqlite_logs(path, rows: list[dict]) -> str:
    """Create a SQLite sink database at ``path`` and return its URL."""
    url = f"sqlite:///{path}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text(SQLITE_SINK_DDL))
        if rows:
            conn.execute(
                text(
                    "INSERT INTO Logs (Timestamp, Level, Exception, RenderedMessage, Properties) "
                    "VALUES (:Timestamp, :Level, :Exception, :RenderedMessage, :Properties)"
                ),
                rows,
            )
    engine.dispose()
    return url


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    """SQLite sink database holding 25 rows."""
    return create_sqlite_logs(tmp_path / "logs.db", seed_rows())


@pytest.fixture
def sqlite_mapping() -> ColumnMapping:
    return ColumnMapping.for_sink(SinkType.SQLITE)


@pytest.fixture
def sqlite_registration(sqlite_url: str) -> ProviderRegistration:
    return ProviderRegistration(dialect="sqlite", table="Logs", connection_string=sqlite_url)


@pytest.fixture
def mock_config(sqlite_registration: ProviderRegistration) -> SinkViewConfig:
    """Configuration with one SQLite provider."""
    return SinkViewConfig(providers=[sqlite_registration])


@pytest.fixture
def mock_context(mock_config: SinkViewConfig) -> Generator[SinkViewContext, None, None]:
    """Create a SinkView context."""
    ctx = SinkViewContext(
        config=mock_config,
        output_format=OutputFormat.TABLE,
        verbose=0,
        quiet=False,
        color=False,
    )
    yield ctx
    ctx.close()


@pytest.fixture
def temp_config_file(tmp_path, sqlite_url: str) -> str:
    """Create a temporary config file registering the SQLite provider."""
    config_content = f"""
version: "1"
global:
  output_format: table
  default_page_size: 10
providers:
  - dialect: sqlite
    table: Logs
    connection_string: "{sqlite_url}"
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(config_content)
    return str(config_file)


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch) -> Generator[None, None, None]:
    """Isolate tests from the user's config and environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for k in ("SINKVIEW_CONFIG", "SINKVIEW_TEST_CONNECTION"):
        monkeypatch.delenv(k, raising=False)
    yield
