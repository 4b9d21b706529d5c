"""Inbound event ingestion for live visits.

Speech and vision producers post discrete events here. Each append is stored,
then the clarification rule is evaluated exactly once for it. Nothing on this
path waits on external services.
"""

from dataclasses import dataclass, field
from typing import Any

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.messaging.explanations import explain_drug
from visitguard.runtime.events import CLARIFICATION, CLARIFICATION_DISMISSED, DRUG_DETECTED, EventHub
from visitguard.session.correlator import (
    Clarification,
    ClarificationTracker,
    attribute_drug,
    evaluate_clarification,
)
from visitguard.session.debouncer import PrescriptionDebouncer
from visitguard.session.extraction import extract_drugs
from visitguard.session.models import (
    PRESCRIBING_ROLES,
    ComprehensionState,
    Confidence,
    ConfusionEvent,
    Prescription,
    Role,
    display_drug_name,
)
from visitguard.session.store import SessionStore

logger = get_logger(__name__)


@dataclass
class IngestAck:
    session_id: str
    accepted: bool
    drug: str | None = None
    fired: bool = False
    prescription: Prescription | None = None
    event: ConfusionEvent | None = None
    clarification: Clarification | None = None


def clarification_payload(clarification: Clarification) -> dict[str, Any]:
    return {
        "drug": clarification.drug,
        "confusionId": clarification.confusion_id,
        "triggeredAt": clarification.triggered_at,
        "expiresAt": clarification.expires_at,
        "explanation": explain_drug(clarification.drug).model_dump(by_alias=True),
    }


@dataclass
class _SessionRuntime:
    debouncer: PrescriptionDebouncer
    tracker: ClarificationTracker = field(default_factory=ClarificationTracker)


class VisitMonitor:
    def __init__(
        self,
        store: SessionStore,
        hub: EventHub | None = None,
        debounce_seconds: float = settings.PRESCRIPTION_DEBOUNCE_SECONDS,
        attribution_window_seconds: float = settings.CORRELATION_WINDOW_SECONDS,
        clarification_window_seconds: float = settings.CLARIFICATION_WINDOW_SECONDS,
        clarification_ttl_seconds: float = settings.CLARIFICATION_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.hub = hub or EventHub()
        self.debounce_seconds = debounce_seconds
        self.attribution_window_seconds = attribution_window_seconds
        self.clarification_window_seconds = clarification_window_seconds
        self.clarification_ttl_seconds = clarification_ttl_seconds
        self._runtimes: dict[str, _SessionRuntime] = {}

    def _runtime(self, session_id: str) -> _SessionRuntime:
        runtime = self._runtimes.get(session_id)
        if runtime is None:
            runtime = _SessionRuntime(
                debouncer=PrescriptionDebouncer(self.debounce_seconds, clock=self.store.now),
                tracker=ClarificationTracker(ttl_seconds=self.clarification_ttl_seconds),
            )
            self._runtimes[session_id] = runtime
        return runtime

    def release(self, session_id: str) -> None:
        self._runtimes.pop(session_id, None)

    async def post_drug_mention(
        self,
        session_id: str,
        drug: str,
        speaker: Role = "doctor",
        dosage: str | None = None,
        duration: str | None = None,
        prescribed_by: str | None = None,
    ) -> IngestAck:
        drug = (drug or "").strip()
        mention = await self.store.add_drug_mention(session_id, drug, speaker=speaker) if drug else None
        if mention is None:
            return IngestAck(session_id=session_id, accepted=False, drug=drug or None)

        ack = IngestAck(session_id=session_id, accepted=True, drug=drug)
        if self._runtime(session_id).debouncer.should_fire(drug, now=mention.timestamp):
            ack.fired = True
            if speaker in PRESCRIBING_ROLES:
                ack.prescription = await self.store.add_prescription(
                    session_id,
                    display_drug_name(drug),
                    dosage=dosage,
                    duration=duration,
                    prescribed_by=prescribed_by,
                )
            logger.info("[monitor] drug detected session_id=%s drug=%s speaker=%s", session_id, drug, speaker)
            await self.hub.publish(session_id, DRUG_DETECTED, {"drug": display_drug_name(drug), "speaker": speaker})
        else:
            logger.debug("[monitor] debounced repeat session_id=%s drug=%s", session_id, drug)

        ack.clarification = await self._evaluate(session_id)
        return ack

    async def post_transcript(self, session_id: str, text: str, speaker: Role = "doctor") -> list[IngestAck]:
        if not await self.store.add_to_transcript(session_id, text):
            return []
        return [await self.post_drug_mention(session_id, drug, speaker=speaker) for drug in extract_drugs(text)]

    async def post_confusion_observation(
        self,
        session_id: str,
        state: ComprehensionState,
        visual_evidence: str,
        confidence: Confidence,
        drug_context: str | None = None,
    ) -> IngestAck:
        event = await self.store.add_confusion_event(
            session_id, state, visual_evidence, confidence, drug_context=drug_context
        )
        if event is None:
            return IngestAck(session_id=session_id, accepted=False)

        ack = IngestAck(session_id=session_id, accepted=True, event=event)
        if event.state is not ComprehensionState.CONFUSION:
            return ack

        drug = attribute_drug(
            event,
            self.store.get_recent_drug_mentions(session_id, self.attribution_window_seconds),
            now=event.timestamp,
            window_seconds=self.attribution_window_seconds,
        )
        if drug:
            ack.event = await self.store.link_confusion_to_drug(session_id, event.id, drug, overwrite=False) or event
        ack.drug = ack.event.drug_context
        ack.clarification = await self._evaluate(session_id)
        return ack

    async def _evaluate(self, session_id: str) -> Clarification | None:
        if self.store.role_of(session_id) != "patient":
            return None

        now = self.store.now()
        tracker = self._runtime(session_id).tracker
        decision = evaluate_clarification(
            self.store.get_recent_confusion_events(session_id, self.clarification_window_seconds),
            self.store.get_recent_drug_mentions(session_id, self.clarification_window_seconds),
            now=now,
            active=tracker.current(now),
            consumed=tracker.consumed,
            window_seconds=self.clarification_window_seconds,
        )
        if not decision.trigger:
            return None

        if decision.inferred:
            await self.store.link_confusion_to_drug(
                session_id, decision.confusion_id, decision.drug, overwrite=False
            )
        clarification = tracker.activate(decision, now)
        if clarification is not None:
            logger.info(
                "[monitor] clarification triggered session_id=%s drug=%s confusion_id=%s",
                session_id,
                clarification.drug,
                clarification.confusion_id,
            )
            await self.hub.publish(session_id, CLARIFICATION, clarification_payload(clarification))
        return clarification

    def current_clarification(self, session_id: str) -> Clarification | None:
        runtime = self._runtimes.get(session_id)
        if runtime is None:
            return None
        return runtime.tracker.current(self.store.now())

    async def dismiss_clarification(self, session_id: str) -> Clarification | None:
        runtime = self._runtimes.get(session_id)
        if runtime is None or runtime.tracker.current(self.store.now()) is None:
            return None
        dismissed = runtime.tracker.dismiss()
        if dismissed is not None:
            await self.hub.publish(session_id, CLARIFICATION_DISMISSED, {"drug": dismissed.drug})
        return dismissed
