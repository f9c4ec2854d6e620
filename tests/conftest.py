from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from commandsite.core.config import Settings
from commandsite.core.logging import configure_logging
from commandsite.main import create_application
from tests.fixtures import sample_commands


@pytest.fixture(autouse=True, scope="session")
def _structured_logging() -> None:
    configure_logging("WARNING")


@pytest.fixture()
def site_settings(tmp_path: Path) -> Settings:
    return Settings(log_dir=str(tmp_path / "logs"), logs_to_keep=3, log_commands=True)


@pytest.fixture()
def client(site_settings: Settings) -> TestClient:
    app, _, _ = create_application(sample_commands, settings=site_settings)
    with TestClient(app) as test_client:
        yield test_client
