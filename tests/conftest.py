"""Shared fixtures"""
import pytest

from noa.assessment import AssessmentCompleter, AssessmentStateMachine, SessionStore
from noa.background import PersistenceQueue
from noa.memory import MemoryRing
from noa.nlp import IntentClassifier
from noa.orchestrator import ConversationOrchestrator
from noa.platform import ActionDispatcher
from noa.response import FixedPhraseSource, ResponseSynthesizer

from tests.fakes import FakePlatform, FakeRecordStore, FakeReportService


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def report_service():
    return FakeReportService()


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def completer(store, report_service):
    return AssessmentCompleter(store, report_service)


@pytest.fixture
def machine(store, completer, records):
    return AssessmentStateMachine(store, completer, records=records)


@pytest.fixture
def dispatcher(store, machine, report_service, records):
    return ActionDispatcher(store, machine, report_service, records=records)


@pytest.fixture
def synthesizer():
    return ResponseSynthesizer(FixedPhraseSource())


@pytest.fixture
def platform():
    return FakePlatform()


def build_orchestrator(store, machine, dispatcher, synthesizer, records, **kwargs) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        classifier=IntentClassifier(),
        store=store,
        machine=machine,
        dispatcher=dispatcher,
        synthesizer=synthesizer,
        records=records,
        background=kwargs.pop("background", PersistenceQueue()),
        memory=kwargs.pop("memory", MemoryRing()),
        **kwargs,
    )


@pytest.fixture
async def make_orchestrator(store, machine, dispatcher, synthesizer, records, platform):
    built = []

    def factory(**kwargs):
        kwargs.setdefault("platform", platform)
        orch = build_orchestrator(store, machine, dispatcher, synthesizer, records, **kwargs)
        built.append(orch)
        return orch

    yield factory
    for orch in built:
        await orch.background.stop()


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
