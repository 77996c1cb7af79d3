import pytest

from helpers.builders import allergy_template
from helpers.fakes import (
    FakeClock,
    FakeConfirmer,
    FakeRouter,
    FakeScheduler,
    RecordingAnnouncer,
    RecordingFocus,
    RecordingPersistence,
)
from questionnaire_engine.config import EngineSettings
from questionnaire_engine.session import QuestionnaireSession


@pytest.fixture
def template():
    return allergy_template()


@pytest.fixture
def persistence():
    return RecordingPersistence()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def settings():
    return EngineSettings(autosave_interval=30)


@pytest.fixture
def session(template, persistence, clock, settings):
    return QuestionnaireSession(template, persistence, settings=settings, clock=clock)


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def confirmer():
    return FakeConfirmer()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def focus():
    return RecordingFocus()
