"""Confusion/drug correlation.

Two separate questions are answered here:

* attribution: which recently mentioned drug (if any) a new confusion event
  should be tagged with, looking back ``CORRELATION_WINDOW_SECONDS``;
* clarification: whether a patient-facing explanation should be shown now,
  looking back ``CLARIFICATION_WINDOW_SECONDS`` over confusion events.

Both are plain functions over event lists and a ``now`` value. The only
state lives in :class:`ClarificationTracker`, which remembers the active
clarification and which confusion events have already fired one.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from visitguard.config.settings import settings
from visitguard.session.models import ComprehensionState, Confidence, ConfusionEvent, DrugMention


def _within(timestamp: float, now: float, window_seconds: float) -> bool:
    return timestamp >= now - window_seconds


def latest_mention(mentions: Iterable[DrugMention]) -> DrugMention | None:
    """Latest by timestamp; equal timestamps resolve to the later insertion."""
    latest: DrugMention | None = None
    for mention in mentions:
        if latest is None or mention.timestamp >= latest.timestamp:
            latest = mention
    return latest


def attribute_drug(
    event: ConfusionEvent,
    drug_mentions: Sequence[DrugMention],
    now: float,
    window_seconds: float = settings.CORRELATION_WINDOW_SECONDS,
) -> str | None:
    if event.state is not ComprehensionState.CONFUSION:
        return None
    if event.drug_context:
        return None
    mention = latest_mention(m for m in drug_mentions if _within(m.timestamp, now, window_seconds))
    return mention.drug if mention else None


@dataclass(frozen=True)
class Clarification:
    drug: str
    confusion_id: str
    triggered_at: float
    ttl_seconds: float = settings.CLARIFICATION_TTL_SECONDS

    @property
    def expires_at(self) -> float:
        return self.triggered_at + self.ttl_seconds

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class ClarificationDecision:
    trigger: bool
    drug: str | None = None
    confusion_id: str | None = None
    # True when the drug came from the latest mention rather than the event itself.
    inferred: bool = False


NO_CLARIFICATION = ClarificationDecision(trigger=False)


def _same_drug(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def evaluate_clarification(
    confusion_events: Sequence[ConfusionEvent],
    drug_mentions: Sequence[DrugMention],
    now: float,
    active: Clarification | None = None,
    consumed: frozenset[str] | set[str] = frozenset(),
    window_seconds: float = settings.CLARIFICATION_WINDOW_SECONDS,
) -> ClarificationDecision:
    recent_drug = latest_mention(m for m in drug_mentions if _within(m.timestamp, now, window_seconds))

    for event in confusion_events:
        if not _within(event.timestamp, now, window_seconds):
            continue
        if event.state is not ComprehensionState.CONFUSION or event.confidence is Confidence.LOW:
            continue
        if event.id in consumed:
            continue

        drug = event.drug_context or (recent_drug.drug if recent_drug else None)
        if not drug:
            continue
        if active is not None and _same_drug(active.drug, drug):
            continue
        return ClarificationDecision(
            trigger=True,
            drug=drug,
            confusion_id=event.id,
            inferred=not event.drug_context,
        )
    return NO_CLARIFICATION


@dataclass
class ClarificationTracker:
    ttl_seconds: float = settings.CLARIFICATION_TTL_SECONDS
    _active: Clarification | None = None
    _consumed: set[str] = field(default_factory=set)

    @property
    def consumed(self) -> frozenset[str]:
        return frozenset(self._consumed)

    def current(self, now: float) -> Clarification | None:
        if self._active is not None and self._active.expired(now):
            self._active = None
        return self._active

    def activate(self, decision: ClarificationDecision, now: float) -> Clarification | None:
        if not decision.trigger or not decision.drug or not decision.confusion_id:
            return None
        self._active = Clarification(
            drug=decision.drug,
            confusion_id=decision.confusion_id,
            triggered_at=now,
            ttl_seconds=self.ttl_seconds,
        )
        self._consumed.add(decision.confusion_id)
        return self._active

    def dismiss(self) -> Clarification | None:
        dismissed, self._active = self._active, None
        return dismissed
