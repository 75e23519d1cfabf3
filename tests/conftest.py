"""
Pytest configuration and fixtures.
"""

import pytest
from pathlib import Path

from featuredev_agent.backend import ScriptedBackend, ScriptedOutcome
from featuredev_agent.config import AgentConfig
from featuredev_agent.controller import FeatureDevController
from featuredev_agent.messenger import RecordingMessenger
from featuredev_agent.state import NewFileZipInfo, SessionManager
from featuredev_agent.telemetry import TelemetryRecorder


@pytest.fixture
def temp_file(tmp_path):
    """Create a temporary file."""
    def _create(name: str, content: str = "") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _create


@pytest.fixture
def telemetry():
    return TelemetryRecorder()


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def one_file_outcome():
    return ScriptedOutcome(
        file_paths=[NewFileZipInfo(zip_file_path="src/app.py", file_content="print('hi')\n")],
        upload_id="upload-42",
    )


@pytest.fixture
def make_controller(messenger, telemetry):
    """Build a controller over a scripted backend."""
    def _make(*outcomes, config=None, **kwargs):
        backend = ScriptedBackend(list(outcomes))
        sessions = SessionManager(backend=backend, telemetry=telemetry)
        controller = FeatureDevController(
            messenger=messenger,
            sessions=sessions,
            config=config or AgentConfig(),
            **kwargs,
        )
        return controller, sessions, backend
    return _make
