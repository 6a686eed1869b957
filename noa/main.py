# noa/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from noa.api.routes import router as api_router
from noa.assessment import AssessmentCompleter, AssessmentStateMachine, SessionStore
from noa.background import PersistenceQueue
from noa.config import Settings, get_settings
from noa.llm import LLMAssistantService, OpenAILLMClient
from noa.log import configure_logging
from noa.memory import MemoryRing
from noa.nlp import IntentClassifier
from noa.orchestrator import ConversationOrchestrator
from noa.platform import ActionDispatcher
from noa.rag import PgVectorKnowledgeSearch
from noa.response import ResponseSynthesizer
from noa.services import (
    PlatformApiClient,
    SqlPatientRecordStore,
    SqlReportService,
    init_db,
)


def build_orchestrator(settings: Settings) -> ConversationOrchestrator:
    """
    Default wiring: SQL-backed reports and patient records, pgvector
    knowledge search, the platform data API and (when an OpenAI key is set)
    the LLM assistant.
    """
    timeout = settings.collaborator_timeout_seconds
    llm_client = OpenAILLMClient(timeout_seconds=timeout) if settings.openai_api_key else None

    store = SessionStore()
    background = PersistenceQueue()
    reports = SqlReportService(llm_client=llm_client)
    records = SqlPatientRecordStore()

    completer = AssessmentCompleter(store, reports, timeout=timeout)
    machine = AssessmentStateMachine(
        store,
        completer,
        records=records,
        background=background,
        drill_all_complaints=settings.drill_all_complaints,
        timeout=timeout,
    )
    dispatcher = ActionDispatcher(store, machine, reports, records=records, timeout=timeout)

    assistant = None
    if settings.use_assistant and llm_client is not None:
        assistant = LLMAssistantService(llm_client)

    return ConversationOrchestrator(
        classifier=IntentClassifier(),
        store=store,
        machine=machine,
        dispatcher=dispatcher,
        synthesizer=ResponseSynthesizer(),
        knowledge=PgVectorKnowledgeSearch(),
        assistant=assistant,
        platform=PlatformApiClient(timeout_seconds=timeout),
        records=records,
        background=background,
        memory=MemoryRing(settings.memory_capacity),
        timeout=timeout,
    )


def create_app(orchestrator: Optional[ConversationOrchestrator] = None) -> FastAPI:
    """
    Build the FastAPI app. A ready orchestrator can be injected (tests);
    otherwise the default one is built at startup.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if app.state.orchestrator is None:
            init_db()
            app.state.orchestrator = build_orchestrator(settings)
            logger.info("Nôa orchestrator ready (assistant={})", settings.use_assistant)

        current = app.state.orchestrator
        current.background.start()
        try:
            yield
        finally:
            await current.background.stop()
            if isinstance(current.platform, PlatformApiClient):
                await current.platform.aclose()

    app = FastAPI(title="Nôa Dialogue API", version="1.0.0", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # for dev; tighten in prod
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.get("/")
    def root():
        return {"message": "Nôa Dialogue API is running"}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
