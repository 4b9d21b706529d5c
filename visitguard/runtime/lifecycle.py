"""Visit lifecycle: connect, disconnect, and off-path finalization.

States per session: ``no_session -> active -> finalizing -> finalized | failed``.
Finalization runs in its own task so that ending a call never waits on the
interaction oracle.
"""

import asyncio
import time
import uuid
from enum import Enum
from typing import Callable, Sequence

from visitguard.config.logger import get_logger, log_stage
from visitguard.messaging.generator import clinician_note, patient_follow_up
from visitguard.runtime.events import VISIT_FAILED, VISIT_FINALIZED, EventHub
from visitguard.runtime.records import RecordExistsError, VisitRecord, VisitRecordStore
from visitguard.safety.evaluator import SafetyEvaluator
from visitguard.safety.history import PatientHistoryStore, merge_history
from visitguard.session.models import PrescriptionItem, Role, VisitSession
from visitguard.session.monitor import VisitMonitor
from visitguard.session.store import SessionStore

logger = get_logger(__name__)


class LifecycleState(str, Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    FAILED = "failed"


_DONE_STATES = frozenset({LifecycleState.FINALIZED, LifecycleState.FAILED})


def summary_url(session_id: str) -> str:
    return f"/api/visit-summary/{session_id}"


class VisitLifecycle:
    def __init__(
        self,
        store: SessionStore,
        monitor: VisitMonitor,
        evaluator: SafetyEvaluator,
        records: VisitRecordStore,
        hub: EventHub | None = None,
        history: PatientHistoryStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.monitor = monitor
        self.evaluator = evaluator
        self.records = records
        self.hub = hub or monitor.hub
        self.history = history
        self._clock = clock
        self._connections: dict[str, str] = {}
        self._states: dict[str, LifecycleState] = {}
        self._done: dict[str, asyncio.Event] = {}
        self._tasks: set[asyncio.Task] = set()

    def new_session_id(self) -> str:
        return f"visit-{int(self._clock() * 1000)}-{uuid.uuid4().hex[:9]}"

    def state_of(self, session_id: str) -> LifecycleState:
        return self._states.get(session_id, LifecycleState.NO_SESSION)

    def session_for(self, connection_id: str) -> str | None:
        return self._connections.get(connection_id)

    def _set_state(self, session_id: str, state: LifecycleState) -> None:
        self._states[session_id] = state
        logger.info("[lifecycle] session_id=%s -> %s", session_id, state.value)
        if state in _DONE_STATES:
            self._done.setdefault(session_id, asyncio.Event()).set()

    async def on_connected(
        self,
        connection_id: str,
        role: Role,
        participant_identity: str | None = None,
        patient_history: Sequence[str] | None = None,
        patient_age: int | None = None,
    ) -> str:
        existing = self._connections.get(connection_id)
        if existing is not None:
            logger.debug("[lifecycle] duplicate connect ignored connection_id=%s", connection_id)
            return existing

        session_id = self.new_session_id()
        self._connections[connection_id] = session_id
        await self.store.start_visit(
            session_id,
            role,
            participant_identity=participant_identity,
            patient_history=list(patient_history or []),
            patient_age=patient_age,
        )
        self._set_state(session_id, LifecycleState.ACTIVE)
        return session_id

    async def on_disconnected(self, connection_id: str) -> asyncio.Task | None:
        session_id = self._connections.pop(connection_id, None)
        if session_id is None:
            return None

        snapshot = await self.store.end_visit(session_id)
        self.monitor.release(session_id)
        if snapshot is None:
            return None

        self._set_state(session_id, LifecycleState.FINALIZING)
        task = asyncio.create_task(self.finalize(snapshot), name=f"finalize-{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def finalize(self, snapshot: VisitSession) -> VisitRecord | None:
        session_id = snapshot.session_id
        try:
            record = await self.run_safety_check(
                session_id,
                snapshot.prescription_items(),
                snapshot.patient_history,
                snapshot.role,
                patient_age=snapshot.patient_age,
                start_time=snapshot.start_time,
                end_time=snapshot.end_time,
            )
        except Exception:
            logger.exception("[lifecycle] finalize failed session_id=%s", session_id)
            self._set_state(session_id, LifecycleState.FAILED)
            await self.hub.publish(session_id, VISIT_FAILED, {"error": "Post-visit safety check failed"})
            return None

        self._set_state(session_id, LifecycleState.FINALIZED)
        await self._dispatch(record)
        return record

    async def _dispatch(self, record: VisitRecord) -> None:
        payload = {"role": record.role, "clinicianNote": record.clinician_note}
        if record.role == "patient":
            payload = {"role": record.role, "summaryUrl": summary_url(record.session_id)}
        await self.hub.publish(record.session_id, VISIT_FINALIZED, payload)

    async def run_safety_check(
        self,
        session_id: str,
        prescriptions: Sequence[PrescriptionItem],
        patient_history: Sequence[str],
        role: Role,
        patient_age: int | None = None,
        start_time: float | None = None,
        end_time: float | None = None,
    ) -> VisitRecord:
        """Evaluate, compose both narratives and persist the record."""
        if await self.records.exists(session_id):
            raise RecordExistsError(session_id)

        record_drugs = self.history.drugs() if self.history is not None else []
        history = merge_history(patient_history, record_drugs)
        check = await self.evaluator.assess(session_id, prescriptions, history, patient_age=patient_age)

        note = clinician_note(check)
        follow_up = patient_follow_up(check)
        log_stage(logger, "lifecycle.clinician_note", note)
        log_stage(logger, "lifecycle.patient_follow_up", follow_up)

        record = VisitRecord(
            session_id=session_id,
            start_time=start_time,
            end_time=end_time if end_time is not None else self._clock(),
            role=role,
            prescriptions=list(prescriptions),
            patient_history=history,
            safety_check=check,
            clinician_note=note,
            patient_follow_up=follow_up,
            created_at=self._clock(),
        )
        return await self.records.save(record)

    async def wait_finalized(self, session_id: str, timeout: float | None = None) -> LifecycleState:
        state = self.state_of(session_id)
        if state in _DONE_STATES or state is LifecycleState.NO_SESSION:
            return state
        event = self._done.setdefault(session_id, asyncio.Event())
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return self.state_of(session_id)
