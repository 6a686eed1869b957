"""Platform action detection and execution tests"""
import pytest

from noa.assessment import AssessmentStep
from noa.platform import PlatformIntent, PlatformIntentType


class TestDetect:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Quero iniciar uma avaliação clínica inicial", PlatformIntentType.ASSESSMENT_START),
            ("Podemos fazer a avaliação IMRE?", PlatformIntentType.ASSESSMENT_START),
            ("pode gerar relatório para mim", PlatformIntentType.REPORT_GENERATE),
            ("mostre meus relatórios", PlatformIntentType.DASHBOARD_QUERY),
            ("abrir o dashboard", PlatformIntentType.DASHBOARD_QUERY),
            ("quero notificar o médico", PlatformIntentType.NOTIFY_PROFESSIONAL),
            ("bom dia", PlatformIntentType.NONE),
            ("", PlatformIntentType.NONE),
        ],
    )
    def test_without_session(self, dispatcher, text, expected):
        assert dispatcher.detect(text, "u1").type == expected

    def test_notify_needs_a_target(self, dispatcher):
        assert dispatcher.detect("pode me avisar amanhã", "u1").type == PlatformIntentType.NONE

    def test_completion_keyword_needs_a_session(self, dispatcher, store):
        assert dispatcher.detect("quero finalizar", "u1").type == PlatformIntentType.NONE

        store.get_or_create("u1")
        intent = dispatcher.detect("quero finalizar", "u1")
        assert intent.type == PlatformIntentType.ASSESSMENT_COMPLETE
        assert intent.confidence == 0.9
        assert intent.metadata["session"] is store.get("u1")

    def test_evolution_step_means_completion(self, dispatcher, store):
        session, _ = store.get_or_create("u1")
        session.step = AssessmentStep.EVOLUTION
        intent = dispatcher.detect("quero ter mais energia", "u1")
        assert intent.type == PlatformIntentType.ASSESSMENT_COMPLETE

    def test_completion_wins_over_start(self, dispatcher, store):
        store.get_or_create("u1")
        intent = dispatcher.detect("concluir avaliação clínica inicial", "u1")
        assert intent.type == PlatformIntentType.ASSESSMENT_COMPLETE

    def test_phrases_match_inside_words(self, dispatcher, store):
        assert dispatcher.detect("pode gerar relatórios hoje?", "u1").type == PlatformIntentType.REPORT_GENERATE

        store.get_or_create("u1")
        assert dispatcher.detect("meu prontuário", "u1").type == PlatformIntentType.NONE
        assert dispatcher.detect("estamos prontos", "u1").type == PlatformIntentType.ASSESSMENT_COMPLETE

    def test_confidences(self, dispatcher):
        assert dispatcher.detect("protocolo IMRE", "u1").confidence == 0.95
        assert dispatcher.detect("relatório clínico", "u1").confidence == 0.85
        assert dispatcher.detect("dashboard", "u1").confidence == 0.8
        assert dispatcher.detect("avisar o profissional", "u1").confidence == 0.75


class TestExecute:
    async def test_none_intent(self, dispatcher):
        result = await dispatcher.execute(PlatformIntent.none(), "u1")
        assert result.success is False
        assert result.requires_response is False

    async def test_empty_user_id(self, dispatcher, store):
        intent = PlatformIntent(type=PlatformIntentType.ASSESSMENT_START)
        result = await dispatcher.execute(intent, "  ")
        assert result.success is False
        assert "user id" in result.error
        assert len(store) == 0

    async def test_start_twice_keeps_one_session(self, dispatcher, store):
        intent = PlatformIntent(type=PlatformIntentType.ASSESSMENT_START)
        first = await dispatcher.execute(intent, "u1", {"patient_name": "Maria"})
        second = await dispatcher.execute(intent, "u1")

        assert first.success and first.data["assessment_started"] is True
        assert first.data["step"] == "INVESTIGATION"
        assert "IMRE" in first.data["message"]
        assert second.data["assessment_started"] is False
        assert len(store) == 1
        assert store.get("u1").patient_name == "Maria"

    async def test_complete_generates_report(self, dispatcher, store, report_service, records):
        session, _ = store.get_or_create("u1", patient_name="Maria")
        session.step = AssessmentStep.EVOLUTION
        intent = dispatcher.detect("quero me sentir melhor", "u1")

        result = await dispatcher.execute(intent, "u1", {"answer": "quero me sentir melhor"})

        assert result.success is True
        assert result.data["report_id"] == "report-1"
        assert "report-1" in result.data["message"]
        assert "quero me sentir melhor" in report_service.calls[0]["sections"].evolution
        assert "u1" not in store
        assert records.assessments["u1"]["status"] == "completed"

    async def test_complete_without_session(self, dispatcher):
        intent = PlatformIntent(type=PlatformIntentType.ASSESSMENT_COMPLETE)
        result = await dispatcher.execute(intent, "u1")
        assert result.success is False
        assert result.requires_response is True
        assert "No active interview session" in result.error

    async def test_complete_failure_keeps_session(self, dispatcher, store, report_service):
        session, _ = store.get_or_create("u1")
        session.step = AssessmentStep.EVOLUTION
        report_service.fail = True

        result = await dispatcher.execute(dispatcher.detect("pronto", "u1"), "u1")

        assert result.success is False
        assert result.data == {"step": "EVOLUTION"}
        assert store.get("u1") is session

    async def test_generate_report_uses_generic_sections(self, dispatcher, report_service):
        intent = PlatformIntent(type=PlatformIntentType.REPORT_GENERATE)
        result = await dispatcher.execute(intent, "u1")

        assert result.success is True
        assert result.data == {"report_id": "report-1", "report_generated": True}
        call = report_service.calls[0]
        assert call["patient_name"] == "Paciente"
        assert len(call["sections"].recommendations) == 3

    async def test_dashboard_lists_reports(self, dispatcher, report_service):
        await dispatcher.execute(PlatformIntent(type=PlatformIntentType.REPORT_GENERATE), "u1")
        result = await dispatcher.execute(PlatformIntent(type=PlatformIntentType.DASHBOARD_QUERY), "u1")
        assert result.data["report_count"] == 1
        assert result.data["reports"][0].id == "report-1"

    async def test_report_service_failure(self, dispatcher, report_service):
        report_service.fail = True
        result = await dispatcher.execute(PlatformIntent(type=PlatformIntentType.DASHBOARD_QUERY), "u1")
        assert result.success is False
        assert result.requires_response is True
        assert "report_service" in result.error

    async def test_notify_professional(self, dispatcher, records):
        intent = PlatformIntent(type=PlatformIntentType.NOTIFY_PROFESSIONAL)
        result = await dispatcher.execute(intent, "u1", {"message": "avisar o médico"})

        assert result.data == {"notification_id": "notif-1", "notified": True}
        assert records.notifications[0]["message"] == "avisar o médico"
        assert records.notifications[0]["metadata"] == {"source": "noa"}
