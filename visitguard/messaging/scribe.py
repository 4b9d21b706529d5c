"""SOAP visit notes from the transcript and visual observations."""

from typing import Any, Sequence

from langchain_core.messages import HumanMessage
from pydantic import Field

from visitguard.config.logger import get_logger, log_stage
from visitguard.llm.model_factory import get_chat_model
from visitguard.messaging.prompts import SCRIBE_SOAP_PROMPT, SCRIBE_TEMPLATE
from visitguard.session.models import FrozenVisitModel, VisitModel

logger = get_logger(__name__)

SCRIBE_AGENT_KEY = "SCRIBE"


class VisualObservation(VisitModel):
    description: str
    timestamp: float | None = None
    action: str = ""
    body_part: str = ""


class VisitNotes(FrozenVisitModel):
    notes: str
    source: str = Field(description="'llm' when a chat model wrote the notes, else 'template'")


def _format_observations(observations: Sequence[VisualObservation]) -> str:
    lines = []
    for obs in observations:
        extra = " ".join(part for part in (obs.action, obs.body_part) if part)
        lines.append(f"- {obs.description}" + (f" ({extra})" if extra else ""))
    return "\n".join(lines)


def template_notes(transcript: Sequence[str], observations: Sequence[VisualObservation]) -> str:
    lines = [line.strip() for line in transcript if line and line.strip()]
    subjective = f'Patient described: "{". ".join(lines[:3])}"' if lines else "No verbal complaints recorded."
    objective = _format_observations(observations) or "No visual observations recorded."
    return SCRIBE_TEMPLATE.format(subjective=subjective, objective=objective)


async def generate_visit_notes(
    transcript: Sequence[str],
    observations: Sequence[VisualObservation],
    llm: Any | None = None,
) -> VisitNotes:
    llm = llm if llm is not None else get_chat_model(SCRIBE_AGENT_KEY)
    if llm is None:
        return VisitNotes(notes=template_notes(transcript, observations), source="template")

    prompt = SCRIBE_SOAP_PROMPT.format(
        transcript="\n".join(transcript) or "No transcript available.",
        observations=_format_observations(observations) or "No visual observations recorded.",
    )
    try:
        response = await llm.ainvoke([HumanMessage(content=prompt)])
        notes = str(response.content).strip()
    except Exception as exc:
        logger.warning("[scribe] model call failed, using template: %s", exc)
        return VisitNotes(notes=template_notes(transcript, observations), source="template")

    if not notes:
        return VisitNotes(notes=template_notes(transcript, observations), source="template")
    log_stage(logger, "scribe.notes", notes)
    return VisitNotes(notes=notes, source="llm")
