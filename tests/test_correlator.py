import asyncio

from visitguard.session.correlator import (
    ClarificationDecision,
    ClarificationTracker,
    attribute_drug,
    evaluate_clarification,
    latest_mention,
)
from visitguard.session.models import ComprehensionState, Confidence, ConfusionEvent, DrugMention
from visitguard.session.monitor import VisitMonitor
from visitguard.session.store import SessionStore

NOW = 1_000.0


def _run(coro):
    return asyncio.run(coro)


def _confusion(event_id: str, ts: float, confidence=Confidence.HIGH, drug=None, state=ComprehensionState.CONFUSION):
    return ConfusionEvent(id=event_id, timestamp=ts, state=state, confidence=confidence, drug_context=drug)


def test_attribution_window_boundary() -> None:
    event = _confusion("c1", NOW)
    assert attribute_drug(event, [DrugMention(drug="Naproxen", timestamp=NOW - 9)], now=NOW) == "Naproxen"
    assert attribute_drug(event, [DrugMention(drug="Naproxen", timestamp=NOW - 11)], now=NOW) is None


def test_attribution_skips_understanding_and_explicit_context() -> None:
    mentions = [DrugMention(drug="Naproxen", timestamp=NOW - 1)]
    understanding = _confusion("c1", NOW, state=ComprehensionState.UNDERSTANDING)
    explicit = _confusion("c2", NOW, drug="Lisinopril")
    assert attribute_drug(understanding, mentions, now=NOW) is None
    assert attribute_drug(explicit, mentions, now=NOW) is None


def test_latest_mention_prefers_later_insertion_on_ties() -> None:
    mentions = [
        DrugMention(drug="Lisinopril", timestamp=NOW),
        DrugMention(drug="Naproxen", timestamp=NOW),
    ]
    assert latest_mention(mentions).drug == "Naproxen"


def test_low_confidence_never_triggers() -> None:
    decision = evaluate_clarification(
        [_confusion("c1", NOW, confidence=Confidence.LOW, drug="Naproxen")],
        [],
        now=NOW,
    )
    assert decision.trigger is False


def test_inferred_drug_from_recent_mention() -> None:
    decision = evaluate_clarification(
        [_confusion("c1", NOW - 2, confidence=Confidence.MEDIUM)],
        [DrugMention(drug="Naproxen", timestamp=NOW - 5)],
        now=NOW,
    )
    assert decision == ClarificationDecision(trigger=True, drug="Naproxen", confusion_id="c1", inferred=True)


def test_same_drug_as_active_is_skipped_and_different_supersedes() -> None:
    tracker = ClarificationTracker(ttl_seconds=30)
    active = tracker.activate(ClarificationDecision(True, "Naproxen", "c0"), now=NOW - 1)

    same = evaluate_clarification([_confusion("c1", NOW, drug="naproxen")], [], now=NOW, active=active)
    other = evaluate_clarification([_confusion("c2", NOW, drug="Lisinopril")], [], now=NOW, active=active)
    assert same.trigger is False
    assert other.trigger is True and other.drug == "Lisinopril"


def test_consumed_events_do_not_refire() -> None:
    events = [_confusion("c1", NOW, drug="Naproxen")]
    assert evaluate_clarification(events, [], now=NOW, consumed=frozenset({"c1"})).trigger is False


def test_tracker_expires_after_ttl() -> None:
    tracker = ClarificationTracker(ttl_seconds=30)
    tracker.activate(ClarificationDecision(True, "Naproxen", "c1"), now=NOW)
    assert tracker.current(NOW + 29) is not None
    assert tracker.current(NOW + 30) is None
    assert "c1" in tracker.consumed


def test_monitor_attributes_and_clarifies_for_patient(clock) -> None:
    store = SessionStore(clock=clock)
    monitor = VisitMonitor(store)

    async def scenario():
        await store.start_visit("s1", "patient")
        await monitor.post_drug_mention("s1", "naproxen")
        clock.advance(9)
        ack = await monitor.post_confusion_observation("s1", ComprehensionState.CONFUSION, "frown", Confidence.HIGH)
        dismissed = await monitor.dismiss_clarification("s1")
        clock.advance(1)
        again = await monitor.post_confusion_observation("s1", ComprehensionState.UNDERSTANDING, "nod", Confidence.HIGH)
        return ack, dismissed, again

    ack, dismissed, again = _run(scenario())
    assert ack.drug == "naproxen"
    assert ack.event.drug_context == "naproxen"
    assert ack.clarification is not None
    assert ack.clarification.confusion_id == ack.event.id
    assert dismissed.drug == "naproxen"
    assert again.clarification is None
    assert monitor.current_clarification("s1") is None


def test_monitor_does_not_attribute_after_window(clock) -> None:
    store = SessionStore(clock=clock)
    monitor = VisitMonitor(store)

    async def scenario():
        await store.start_visit("s1", "doctor")
        await monitor.post_drug_mention("s1", "naproxen")
        clock.advance(11)
        return await monitor.post_confusion_observation("s1", ComprehensionState.CONFUSION, "", Confidence.HIGH)

    ack = _run(scenario())
    assert ack.accepted is True
    assert ack.event.drug_context is None
    assert ack.clarification is None


def test_monitor_never_clarifies_for_doctor_role(clock) -> None:
    store = SessionStore(clock=clock)
    monitor = VisitMonitor(store)

    async def scenario():
        await store.start_visit("s1", "doctor")
        await monitor.post_drug_mention("s1", "naproxen")
        return await monitor.post_confusion_observation("s1", ComprehensionState.CONFUSION, "", Confidence.HIGH)

    ack = _run(scenario())
    assert ack.event.drug_context == "naproxen"
    assert ack.clarification is None


def test_monitor_rejects_unknown_session(clock) -> None:
    monitor = VisitMonitor(SessionStore(clock=clock))
    ack = _run(monitor.post_confusion_observation("nope", ComprehensionState.CONFUSION, "", Confidence.HIGH))
    assert ack.accepted is False
