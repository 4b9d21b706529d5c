import asyncio
from unittest.mock import AsyncMock, MagicMock

from visitguard.messaging import scribe
from visitguard.messaging.scribe import VisualObservation, generate_visit_notes


def _run(coro):
    return asyncio.run(coro)


OBSERVATIONS = [VisualObservation(description="Patient pointed to right knee", action="pointing", body_part="knee")]


def test_template_notes_when_no_model(monkeypatch) -> None:
    monkeypatch.setattr(scribe, "get_chat_model", lambda *_args, **_kwargs: None)
    notes = _run(generate_visit_notes(["My knee hurts", "It started last week"], OBSERVATIONS))
    assert notes.source == "template"
    for heading in ("## Subjective", "## Objective", "## Assessment", "## Plan"):
        assert heading in notes.notes
    assert 'Patient described: "My knee hurts. It started last week"' in notes.notes
    assert "- Patient pointed to right knee (pointing knee)" in notes.notes


def test_template_notes_with_empty_inputs(monkeypatch) -> None:
    monkeypatch.setattr(scribe, "get_chat_model", lambda *_args, **_kwargs: None)
    notes = _run(generate_visit_notes([], []))
    assert "No verbal complaints recorded." in notes.notes
    assert "No visual observations recorded." in notes.notes


def test_model_notes_are_returned() -> None:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=MagicMock(content="# SOAP\n## Subjective\nKnee pain."))
    notes = _run(generate_visit_notes(["My knee hurts"], OBSERVATIONS, llm=llm))
    assert notes.source == "llm"
    assert notes.notes.startswith("# SOAP")
    prompt = llm.ainvoke.call_args.args[0][0].content
    assert "My knee hurts" in prompt
    assert "Patient pointed to right knee" in prompt


def test_model_failure_falls_back_to_template() -> None:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=RuntimeError("provider down"))
    notes = _run(generate_visit_notes(["My knee hurts"], [], llm=llm))
    assert notes.source == "template"
    assert "## Plan" in notes.notes
