"""Per-session event logs for in-progress visits.

Each active session owns its own ``asyncio.Lock``; start/end and appends for
one session are serialised on it, and different sessions never contend.
Calls against a session that is not active are no-ops that return ``None``
(or ``False``), never an exception.
"""

import asyncio
import time
import uuid
from typing import Callable

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.session.models import (
    ComprehensionState,
    Confidence,
    ConfusionEvent,
    DrugMention,
    Prescription,
    Role,
    VisitSession,
)

logger = get_logger(__name__)


def _within(timestamp: float, now: float, window_seconds: float) -> bool:
    return timestamp >= now - window_seconds


class SessionStore:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._sessions: dict[str, VisitSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def now(self) -> float:
        return self._clock()

    def _lock_for(self, session_id: str) -> asyncio.Lock | None:
        return self._locks.get(session_id)

    # -- lifecycle -----------------------------------------------------------

    async def start_visit(
        self,
        session_id: str,
        role: Role,
        participant_identity: str | None = None,
        patient_history: list[str] | None = None,
        patient_age: int | None = None,
    ) -> bool:
        async with self._locks.setdefault(session_id, asyncio.Lock()):
            if session_id in self._sessions:
                logger.info("[session] start ignored, already active session_id=%s", session_id)
                return False
            self._sessions[session_id] = VisitSession(
                session_id=session_id,
                start_time=self.now(),
                role=role,
                participant_identity=participant_identity,
                patient_history=list(patient_history or []),
                patient_age=patient_age,
            )
        logger.info("[session] started session_id=%s role=%s", session_id, role)
        return True

    async def end_visit(self, session_id: str) -> VisitSession | None:
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        async with lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return None
            snapshot = session.model_copy(update={"end_time": self.now()}, deep=True)
        self._locks.pop(session_id, None)
        logger.info(
            "[session] ended session_id=%s prescriptions=%s confusion_events=%s mentions=%s",
            session_id,
            len(snapshot.prescriptions),
            len(snapshot.confusion_events),
            len(snapshot.drug_mentions),
        )
        return snapshot

    # -- appends -------------------------------------------------------------

    async def add_confusion_event(
        self,
        session_id: str,
        state: ComprehensionState,
        visual_evidence: str,
        confidence: Confidence,
        drug_context: str | None = None,
    ) -> ConfusionEvent | None:
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            now = self.now()
            event = ConfusionEvent(
                id=f"confusion-{int(now * 1000)}-{uuid.uuid4().hex[:9]}",
                timestamp=now,
                state=state,
                visual_evidence=visual_evidence or "",
                confidence=confidence,
                drug_context=drug_context or None,
            )
            session.confusion_events.append(event)
            return event

    async def add_drug_mention(
        self,
        session_id: str,
        drug: str,
        speaker: Role = "doctor",
    ) -> DrugMention | None:
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            mention = DrugMention(drug=drug, timestamp=self.now(), speaker=speaker)
            session.drug_mentions.append(mention)
            return mention

    async def add_prescription(
        self,
        session_id: str,
        drug: str,
        dosage: str | None = None,
        duration: str | None = None,
        prescribed_by: str | None = None,
    ) -> Prescription | None:
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            prescription = Prescription(
                drug=drug,
                dosage=dosage,
                duration=duration,
                timestamp=self.now(),
                prescribed_by=prescribed_by,
            )
            session.prescriptions.append(prescription)
            return prescription

    async def add_to_transcript(self, session_id: str, text: str) -> bool:
        line = (text or "").strip()
        lock = self._lock_for(session_id)
        if lock is None:
            return False
        async with lock:
            session = self._sessions.get(session_id)
            if session is None or not line:
                return False
            session.transcript.append(line)
            return True

    async def set_patient_history(self, session_id: str, drugs: list[str]) -> bool:
        lock = self._lock_for(session_id)
        if lock is None:
            return False
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.patient_history = [d.strip() for d in drugs if d and d.strip()]
            return True

    async def link_confusion_to_drug(
        self,
        session_id: str,
        confusion_id: str,
        drug: str,
        overwrite: bool = True,
    ) -> ConfusionEvent | None:
        """Attach ``drug`` to one confusion event, replacing it in place by id."""
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            events = session.confusion_events
            for idx, event in enumerate(events):
                if event.id != confusion_id:
                    continue
                if event.drug_context and not overwrite:
                    return event
                events[idx] = event.model_copy(update={"drug_context": drug})
                return events[idx]
            return None

    # -- reads ---------------------------------------------------------------

    def is_active(self, session_id: str) -> bool:
        return session_id in self._sessions

    def role_of(self, session_id: str) -> Role | None:
        session = self._sessions.get(session_id)
        return session.role if session else None

    def get_visit_data(self, session_id: str) -> VisitSession | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    def get_recent_confusion_events(
        self,
        session_id: str,
        window_seconds: float = settings.RECENT_EVENTS_WINDOW_SECONDS,
    ) -> list[ConfusionEvent]:
        session = self._sessions.get(session_id)
        if session is None:
            return []
        now = self.now()
        return [e for e in session.confusion_events if _within(e.timestamp, now, window_seconds)]

    def get_recent_drug_mentions(
        self,
        session_id: str,
        window_seconds: float = settings.RECENT_EVENTS_WINDOW_SECONDS,
    ) -> list[DrugMention]:
        session = self._sessions.get(session_id)
        if session is None:
            return []
        now = self.now()
        return [m for m in session.drug_mentions if _within(m.timestamp, now, window_seconds)]
