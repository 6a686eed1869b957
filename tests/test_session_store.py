"""SessionStore tests"""
import asyncio
import gc

from noa.assessment import AssessmentStep, SessionStore


class TestSessionStore:
    def test_get_or_create_is_idempotent(self):
        store = SessionStore()
        first, created = store.get_or_create("u1", patient_name="Maria")
        again, created_again = store.get_or_create("u1", patient_name="Outra")

        assert created is True
        assert created_again is False
        assert first is again
        assert again.patient_name == "Maria"
        assert len(store) == 1

    def test_delete(self):
        store = SessionStore()
        store.get_or_create("u1")
        assert store.delete("u1") is True
        assert store.delete("u1") is False
        assert store.get("u1") is None
        assert "u1" not in store

    def test_set_touches_session(self):
        store = SessionStore()
        session, _ = store.get_or_create("u1")
        before = session.last_update
        session.step = AssessmentStep.RESULT
        store.set(session)
        assert store.get("u1").step == AssessmentStep.RESULT
        assert store.get("u1").last_update >= before

    def test_reset_replaces_session(self):
        store = SessionStore()
        old, _ = store.get_or_create("u1")
        old.step = AssessmentStep.EVOLUTION
        fresh = store.reset("u1")
        assert fresh is not old
        assert store.get("u1").step == AssessmentStep.INVESTIGATION

    def test_lock_is_per_user(self):
        store = SessionStore()
        assert store.lock_for("a") is store.lock_for("a")
        assert store.lock_for("a") is not store.lock_for("b")

    async def test_lock_serialises_same_user(self):
        store = SessionStore()
        order = []

        async def turn(tag):
            async with store.lock_for("u1"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(turn("a"), turn("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_idle_lock_is_released(self):
        store = SessionStore()
        async with store.lock_for("u1"):
            assert "u1" in store._locks
        gc.collect()
        assert "u1" not in store._locks

    def test_session_to_dict(self):
        store = SessionStore()
        session, _ = store.get_or_create("u1", patient_name="Maria")
        data = session.to_dict()
        assert data["step"] == "INVESTIGATION"
        assert data["investigation"]["phase"] == "presentation"
        assert data["patient_name"] == "Maria"
