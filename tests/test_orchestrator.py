"""ConversationOrchestrator tests"""
import asyncio

from noa.collaborators import AssistantReply, Document
from noa.orchestrator import ConversationOrchestrator, knowledge_library_query

from tests.fakes import FakeAssistant, FakeKnowledgeSearch

START = "Quero iniciar uma avaliação clínica inicial"
INTERVIEW = [
    "Olá, sou a Maria, tenho 42 anos.",
    "dor de cabeça",
    "insônia",
    "só isso",
    "1",
    "na testa",
    "há duas semanas",
    "latejante",
    "náusea e tontura",
    "Melhora com repouso e piora com barulho.",
    "uso dipirona às vezes",
    "alivia um pouco",
]
EVOLUTION_ANSWER = "quero voltar a dormir bem"


class TestInterviewFlow:
    async def test_full_assessment(self, orchestrator, machine, report_service):
        reply = await orchestrator.handle("u1", START, patient_name="Maria")
        assert reply.content == machine.OPENING
        assert reply.type == "assessment"
        assert reply.confidence == 0.95
        assert reply.metadata["platform_action"] == "ASSESSMENT_START"

        for answer in INTERVIEW:
            reply = await orchestrator.handle("u1", answer)
            assert reply.type == "assessment"
            assert reply.confidence == 0.9
        assert reply.metadata["step"] == "EVOLUTION"
        assert orchestrator.get_session_state("u1")["step"] == "EVOLUTION"

        reply = await orchestrator.handle("u1", EVOLUTION_ANSWER)

        assert reply.metadata["report_id"] == "report-1"
        assert "report-1" in reply.content
        assert len(report_service.calls) == 1
        assert EVOLUTION_ANSWER in report_service.calls[0]["sections"].evolution
        assert orchestrator.get_session_state("u1") is None

    async def test_plain_factors_answer_still_completes(self, orchestrator, report_service, store):
        await orchestrator.handle("u1", START)
        answers = INTERVIEW[:9] + ["repouso no escuro", "uso dipirona", "alivia um pouco"]
        for answer in answers:
            reply = await orchestrator.handle("u1", answer)
        assert reply.metadata["step"] == "EVOLUTION"

        detail = store.get("u1").investigation.complaint_details["dor de cabeça"]
        assert detail.improves == "repouso no escuro"
        assert detail.worsens is None
        assert store.get("u1").methodology == "uso dipirona"

        reply = await orchestrator.handle("u1", EVOLUTION_ANSWER)
        assert reply.metadata["report_id"] == "report-1"
        assert len(report_service.calls) == 1

    async def test_start_twice_resumes(self, orchestrator, store):
        await orchestrator.handle("u1", START)
        await orchestrator.handle("u1", INTERVIEW[0])
        reply = await orchestrator.handle("u1", START)

        assert "já está em andamento" in reply.content
        assert store.get("u1").investigation.presenting_self == INTERVIEW[0]

    async def test_report_failure_keeps_evolution(self, orchestrator, report_service, store):
        await orchestrator.handle("u1", START)
        for answer in INTERVIEW:
            await orchestrator.handle("u1", answer)
        report_service.fail = True

        reply = await orchestrator.handle("u1", EVOLUTION_ANSWER)
        assert reply.type == "error"
        assert reply.confidence == 0.3
        assert reply.metadata["step"] == "EVOLUTION"
        assert store.get("u1").step.value == "EVOLUTION"

        report_service.fail = False
        reply = await orchestrator.handle("u1", EVOLUTION_ANSWER)
        assert reply.metadata["report_id"] == "report-1"
        assert report_service.successful == 1

    async def test_interview_turns_skip_knowledge_lookup(self, make_orchestrator):
        knowledge = FakeKnowledgeSearch()
        orch = make_orchestrator(knowledge=knowledge)
        await orch.handle("u1", START)
        queries_after_start = len(knowledge.queries)
        await orch.handle("u1", INTERVIEW[0])
        assert len(knowledge.queries) == queries_after_start


class TestAssistant:
    async def test_delegates_when_configured(self, make_orchestrator):
        assistant = FakeAssistant()
        orch = make_orchestrator(assistant=assistant)

        reply = await orch.handle("u1", "Qual o status atual da plataforma?")

        assert reply.content == "Resposta do assistente."
        assert reply.confidence == 0.97
        assert reply.metadata["source"] == "assistant"
        assert reply.metadata["intent"] == "STATUS"
        assert "Intenção detectada: STATUS" in assistant.prompts[0]
        assert assistant.prompts[0].endswith("Mensagem do usuário:\nQual o status atual da plataforma?")

    async def test_fallback_source_lowers_confidence(self, make_orchestrator):
        orch = make_orchestrator(assistant=FakeAssistant(source="fallback"))
        reply = await orch.handle("u1", "bom dia")
        assert reply.confidence == 0.86

    async def test_failure_answers_locally(self, make_orchestrator, platform):
        assistant = FakeAssistant()
        assistant.fail = True
        platform.responses["status"] = {"status": "online"}
        orch = make_orchestrator(assistant=assistant)

        reply = await orch.handle("u1", "Qual o status atual da plataforma?")

        assert "Sistema identificado como online." in reply.content
        assert reply.confidence == 0.85

    async def test_empty_answer_answers_locally(self, make_orchestrator):
        orch = make_orchestrator(assistant=FakeAssistant(content=""))
        reply = await orch.handle("u1", "Obrigado pela ajuda")
        assert reply.content == ConversationOrchestrator.SMALL_TALK

    async def test_skipped_during_interview(self, make_orchestrator, machine):
        assistant = FakeAssistant()
        orch = make_orchestrator(assistant=assistant)

        reply = await orch.handle("u1", START)
        assert reply.content == machine.OPENING
        reply = await orch.handle("u1", INTERVIEW[0])
        assert reply.content == machine.PROMPTS["chief_reason"]
        assert assistant.prompts == []

    async def test_action_outcome_goes_into_prompt(self, make_orchestrator):
        assistant = FakeAssistant()
        orch = make_orchestrator(assistant=assistant)

        reply = await orch.handle("u1", "pode gerar relatório para mim", patient_name="Maria")

        assert "Ação da plataforma: Relatório clínico report-1 gerado" in assistant.prompts[0]
        assert "Usuário: Maria" in assistant.prompts[0]
        assert reply.metadata["platform_action"] == "REPORT_GENERATE"

    async def test_knowledge_highlight_goes_into_prompt(self, make_orchestrator):
        assistant = FakeAssistant()
        knowledge = FakeKnowledgeSearch(
            [Document(id="doc-1", title="Documento Mestre", summary="Resumo do documento.", category="geral")]
        )
        orch = make_orchestrator(assistant=assistant, knowledge=knowledge)

        reply = await orch.handle("u1", "O que diz o documento mestre?")

        assert "Base de conhecimento: Documento Mestre" in assistant.prompts[0]
        assert reply.metadata["knowledge_highlight"] == "doc-1"
        assert knowledge.queries[0] == {"query": "documento mestre", "linked_only": True, "limit": 1}
        assert knowledge.queries[1]["linked_only"] is False


class TestLocalReplies:
    async def test_small_talk(self, orchestrator):
        reply = await orchestrator.handle("u1", "Obrigado pela ajuda")
        assert reply.content == ConversationOrchestrator.SMALL_TALK
        assert reply.confidence == 0.8

    async def test_unknown_refers_to_last_message(self, orchestrator):
        first = await orchestrator.handle("u1", "quero marcar uma consulta")
        assert first.content == ConversationOrchestrator.INTRO
        assert first.confidence == 0.6

        second = await orchestrator.handle("u1", "e o horário?")
        assert '"quero marcar uma consulta"' in second.content

    async def test_empty_text_asks_for_next_step(self, orchestrator):
        reply = await orchestrator.handle("u1", "")
        assert reply.content == ConversationOrchestrator.ASK_NEXT

    async def test_clinical_reply_uses_platform_data(self, orchestrator, platform):
        platform.responses["simulations"] = {
            "data": {"simulations": [{"specialty": "nefrologia", "status": "ativa"}]}
        }
        reply = await orchestrator.handle("u1", "Atualize as simulações de pacientes nefro em andamento.")

        assert reply.confidence == 0.85
        assert "nefrologia (ativa)" in reply.content
        assert reply.metadata["domain"] == "nephrology"
        assert platform.calls == [("simulations",)]

    async def test_knowledge_query_uses_last_words(self, orchestrator, platform):
        await orchestrator.handle(
            "u1", "Preciso consultar a biblioteca sobre cannabis medicinal"
        )
        assert platform.calls == [("knowledge", "sobre cannabis medicinal")]

    async def test_imre_needs_no_platform_call(self, orchestrator, platform):
        reply = await orchestrator.handle("u1", "Ajuste de dose de canabidiol")
        assert "IMRE Triaxial" in reply.content
        assert platform.calls == []

    async def test_platform_failure(self, orchestrator, platform):
        platform.fail = True
        reply = await orchestrator.handle("u1", "Qual o status atual da plataforma?")
        assert reply.content == ConversationOrchestrator.PLATFORM_ERROR
        assert reply.confidence == 0.3
        assert reply.type == "error"

    async def test_invalid_platform_payload(self, orchestrator, platform):
        platform.responses["training"] = {"modules": "not-a-list"}
        reply = await orchestrator.handle("u1", "Mostre o histórico de treinamento")
        assert reply.content == ConversationOrchestrator.PLATFORM_ERROR

    async def test_non_object_platform_body(self, orchestrator, platform):
        platform.responses["knowledge"] = [{"title": "Guia CBD"}]
        reply = await orchestrator.handle(
            "u1", "Preciso consultar a biblioteca sobre cannabis medicinal"
        )
        assert reply.content == ConversationOrchestrator.PLATFORM_ERROR
        assert reply.type == "error"

    async def test_knowledge_highlight_is_appended(self, make_orchestrator):
        knowledge = FakeKnowledgeSearch(
            [Document(id="doc-7", title="Guia CBD", summary="x" * 300, category="cannabis")],
            linked_ids={"doc-7"},
        )
        orch = make_orchestrator(knowledge=knowledge)

        reply = await orch.handle("u1", "Ajuste de dose de canabidiol")

        assert "Conhecimento em foco: Guia CBD" in reply.content
        assert reply.content.endswith("x" * 217 + "...")
        assert reply.metadata["knowledge_highlight"] == "doc-7"
        assert len(knowledge.queries) == 1

    async def test_dashboard_action(self, orchestrator):
        reply = await orchestrator.handle("u1", "mostre meus relatórios")
        assert reply.content == "Nenhum relatório clínico salvo no dashboard até o momento."
        assert reply.confidence == 0.8

    async def test_notify_action(self, orchestrator, records):
        reply = await orchestrator.handle("u1", "quero notificar o médico")
        assert "notif-1" in reply.content
        assert records.notifications[0]["message"] == "quero notificar o médico"


class TestErrorsAndPersistence:
    async def test_empty_user_id(self, orchestrator):
        reply = await orchestrator.handle("", "bom dia")
        assert reply.type == "error"
        assert reply.confidence == 0.3
        assert orchestrator.get_memory() == []

    async def test_snapshot_is_persisted(self, orchestrator, records):
        reply = await orchestrator.handle("u1", "Obrigado pela ajuda")
        await orchestrator.background.drain()

        snapshot = records.interactions[0]
        assert snapshot["patient_id"] == "u1"
        assert snapshot["reply"] == reply.content
        assert snapshot["intent"] == "SMALL_TALK"

    async def test_records_failure_does_not_break_reply(self, orchestrator, records):
        records.fail = True
        reply = await orchestrator.handle("u1", "Obrigado pela ajuda")
        await orchestrator.background.drain()

        assert reply.content == ConversationOrchestrator.SMALL_TALK
        assert orchestrator.background.failed_jobs == 1

    async def test_memory_and_history(self, orchestrator):
        await orchestrator.handle("u1", "Obrigado pela ajuda")

        memory = orchestrator.get_memory()
        assert len(memory) == 1
        assert memory[0].content.startswith("Usuário: Obrigado pela ajuda\nAssistente: ")
        assert [m.role for m in orchestrator.get_history("u1")] == ["user", "assistant"]

        orchestrator.clear_memory()
        assert orchestrator.get_memory() == []

    async def test_interview_turns_are_assessment_memories(self, orchestrator):
        await orchestrator.handle("u1", START)
        assert orchestrator.get_memory()[0].type == "assessment"
        assert "avaliacao-clinica" in orchestrator.get_memory()[0].tags


class SlowAssistant:
    def __init__(self):
        self.events = []

    async def send_message(self, prompt, user_id=None, route_context=None):
        self.events.append(f"{user_id}-in")
        await asyncio.sleep(0.02)
        self.events.append(f"{user_id}-out")
        return AssistantReply(content="ok")


class TestConcurrency:
    async def test_same_user_is_serialised(self, make_orchestrator):
        assistant = SlowAssistant()
        orch = make_orchestrator(assistant=assistant)

        await asyncio.gather(orch.handle("u1", "bom dia"), orch.handle("u1", "boa tarde"))

        assert assistant.events == ["u1-in", "u1-out", "u1-in", "u1-out"]

    async def test_different_users_overlap(self, make_orchestrator):
        assistant = SlowAssistant()
        orch = make_orchestrator(assistant=assistant)

        await asyncio.gather(orch.handle("u1", "bom dia"), orch.handle("u2", "bom dia"))

        assert set(assistant.events[:2]) == {"u1-in", "u2-in"}


def test_knowledge_library_query():
    assert knowledge_library_query("dose de cannabis para dor") == "cannabis para dor"
    assert knowledge_library_query("cannabis dor") is None
