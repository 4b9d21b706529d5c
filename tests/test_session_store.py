import asyncio

from visitguard.session.models import ComprehensionState, Confidence
from visitguard.session.store import SessionStore


def _run(coro):
    return asyncio.run(coro)


def test_start_visit_is_idempotent(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        assert await store.start_visit("s1", "patient") is True
        await store.add_drug_mention("s1", "Lisinopril")
        clock.advance(5)
        assert await store.start_visit("s1", "doctor") is False
        return store.get_visit_data("s1")

    session = _run(scenario())
    assert session.role == "patient"
    assert session.start_time == 1_700_000_000.0
    assert [m.drug for m in session.drug_mentions] == ["Lisinopril"]


def test_calls_without_active_session_are_noops(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        return (
            await store.add_drug_mention("missing", "Naproxen"),
            await store.add_confusion_event("missing", ComprehensionState.CONFUSION, "", Confidence.HIGH),
            await store.add_prescription("missing", "Naproxen"),
            await store.add_to_transcript("missing", "hello"),
            await store.set_patient_history("missing", ["Warfarin"]),
            await store.link_confusion_to_drug("missing", "confusion-1", "Naproxen"),
            await store.end_visit("missing"),
        )

    assert _run(scenario()) == (None, None, None, False, False, None, None)
    assert store.get_recent_drug_mentions("missing") == []
    assert store.role_of("missing") is None


def test_end_visit_snapshots_and_clears(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        await store.start_visit("s1", "doctor", patient_history=["Warfarin"], patient_age=70)
        await store.add_prescription("s1", "Naproxen", dosage="500mg")
        await store.add_to_transcript("s1", "  take naproxen twice daily  ")
        clock.advance(120)
        return await store.end_visit("s1")

    snapshot = _run(scenario())
    assert snapshot is not None
    assert snapshot.end_time == clock.t
    assert snapshot.patient_history == ["Warfarin"]
    assert snapshot.patient_age == 70
    assert snapshot.transcript == ["take naproxen twice daily"]
    assert [p.drug for p in snapshot.prescription_items()] == ["Naproxen"]
    assert store.is_active("s1") is False
    assert store.get_visit_data("s1") is None


def test_recent_reads_filter_by_window_and_keep_order(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        await store.start_visit("s1", "doctor")
        await store.add_drug_mention("s1", "Lisinopril")
        clock.advance(20)
        await store.add_drug_mention("s1", "Naproxen")
        clock.advance(10)
        await store.add_drug_mention("s1", "Ibuprofen")

    _run(scenario())
    assert [m.drug for m in store.get_recent_drug_mentions("s1", window_seconds=10)] == ["Naproxen", "Ibuprofen"]
    assert [m.drug for m in store.get_recent_drug_mentions("s1", window_seconds=30)] == [
        "Lisinopril",
        "Naproxen",
        "Ibuprofen",
    ]


def test_link_confusion_to_drug_replaces_event_by_id(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        await store.start_visit("s1", "patient")
        event = await store.add_confusion_event("s1", ComprehensionState.CONFUSION, "frown", Confidence.HIGH)
        linked = await store.link_confusion_to_drug("s1", event.id, "Naproxen")
        kept = await store.link_confusion_to_drug("s1", event.id, "Ibuprofen", overwrite=False)
        return event, linked, kept

    event, linked, kept = _run(scenario())
    assert event.id.startswith("confusion-")
    assert event.drug_context is None
    assert linked.drug_context == "Naproxen"
    assert kept.drug_context == "Naproxen"
    assert store.get_recent_confusion_events("s1")[0].drug_context == "Naproxen"


def test_inactive_session_calls_do_not_allocate_locks(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        for i in range(200):
            await store.add_drug_mention(f"ghost-{i}", "Naproxen")
            await store.add_confusion_event(f"ghost-{i}", ComprehensionState.CONFUSION, "", Confidence.LOW)
            await store.link_confusion_to_drug(f"ghost-{i}", "confusion-1", "Naproxen")
            await store.end_visit(f"ghost-{i}")
        await store.start_visit("s1", "patient")
        held_while_active = len(store._locks)
        await store.end_visit("s1")
        return held_while_active

    assert _run(scenario()) == 1
    assert store._locks == {}


def test_concurrent_appends_and_links_are_not_lost(clock) -> None:
    store = SessionStore(clock=clock)

    async def scenario():
        await store.start_visit("s1", "patient")
        target = await store.add_confusion_event("s1", ComprehensionState.CONFUSION, "squint", Confidence.MEDIUM)
        await asyncio.gather(
            *(store.add_drug_mention("s1", f"Drug{i}") for i in range(50)),
            *(
                store.add_confusion_event("s1", ComprehensionState.CONFUSION, f"pause {i}", Confidence.LOW)
                for i in range(50)
            ),
            *(store.link_confusion_to_drug("s1", target.id, f"Drug{i}", overwrite=False) for i in range(10)),
        )
        return target, store.get_visit_data("s1")

    target, session = _run(scenario())
    assert sorted(m.drug for m in session.drug_mentions) == sorted(f"Drug{i}" for i in range(50))
    assert len(session.confusion_events) == 51
    assert len({e.id for e in session.confusion_events}) == 51
    linked = [e for e in session.confusion_events if e.id == target.id]
    assert len(linked) == 1
    assert linked[0].drug_context == "Drug0"
    assert sum(1 for e in session.confusion_events if e.drug_context) == 1
