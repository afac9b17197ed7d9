from unittest.mock import AsyncMock

import pytest

from helpers.mocks import FakeGenerator, MockRepository, RecordingNotifier
from survey_engine.orchestrator import SurveyOrchestrator
from survey_engine.presets import PresetService
from survey_engine.prompt import PromptManager


@pytest.fixture(scope="session")
def prompts():
    return PromptManager()


@pytest.fixture
def mock_repo():
    """Fresh MockRepository for each test."""
    return MockRepository()


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession — flush/commit are no-ops."""
    return AsyncMock()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(generator, prompts, notifier, mock_repo):
    """SurveyOrchestrator with mocked repository and model."""
    orch = SurveyOrchestrator(generator, prompts=prompts, notifier=notifier)
    orch._repo = mock_repo
    return orch


@pytest.fixture
def presets(generator, prompts, mock_repo):
    """PresetService sharing the orchestrator's mocked repository."""
    svc = PresetService(generator, prompts=prompts)
    svc._repo = mock_repo
    return svc
