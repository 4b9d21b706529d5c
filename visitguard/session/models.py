from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["doctor", "patient"]

# Speakers whose drug mentions count as confirmed orders.
PRESCRIBING_ROLES: frozenset[str] = frozenset({"doctor"})


class VisitModel(BaseModel):
    """Base for wire-facing models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenVisitModel(VisitModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ComprehensionState(str, Enum):
    CONFUSION = "CONFUSION"
    UNDERSTANDING = "UNDERSTANDING"


class Confidence(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ConfusionEvent(FrozenVisitModel):
    id: str
    timestamp: float
    state: ComprehensionState
    visual_evidence: str = ""
    confidence: Confidence
    drug_context: str | None = None


class DrugMention(FrozenVisitModel):
    drug: str
    timestamp: float
    speaker: Role = "doctor"


class Prescription(FrozenVisitModel):
    drug: str
    dosage: str | None = None
    duration: str | None = None
    timestamp: float
    prescribed_by: str | None = None


class PrescriptionItem(FrozenVisitModel):
    """A prescription as submitted for safety evaluation (no timestamp)."""

    drug: str = Field(min_length=1)
    dosage: str | None = None
    duration: str | None = None


class VisitSession(VisitModel):
    session_id: str
    start_time: float
    end_time: float | None = None
    role: Role
    participant_identity: str | None = None
    prescriptions: list[Prescription] = Field(default_factory=list)
    confusion_events: list[ConfusionEvent] = Field(default_factory=list)
    drug_mentions: list[DrugMention] = Field(default_factory=list)
    patient_history: list[str] = Field(default_factory=list)
    patient_age: int | None = None
    transcript: list[str] = Field(default_factory=list)

    def prescription_items(self) -> list[PrescriptionItem]:
        return [
            PrescriptionItem(drug=p.drug, dosage=p.dosage, duration=p.duration)
            for p in self.prescriptions
        ]


def display_drug_name(drug: str) -> str:
    """`lisinopril` -> `Lisinopril`; the rest of the name is left untouched."""
    name = (drug or "").strip()
    return name[:1].upper() + name[1:]
