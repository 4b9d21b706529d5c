from typing import Annotated, Any

from pydantic import Field, StringConstraints

from visitguard.messaging.scribe import VisualObservation
from visitguard.safety.models import SafetyCheck
from visitguard.session.models import (
    ComprehensionState,
    Confidence,
    ConfusionEvent,
    Prescription,
    PrescriptionItem,
    Role,
    VisitModel,
)

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ConnectRequest(VisitModel):
    connection_id: NonBlank
    role: Role
    participant_identity: str | None = None
    patient_history: list[str] = Field(default_factory=list)
    patient_age: int | None = Field(default=None, ge=0, le=130)


class ConnectResponse(VisitModel):
    session_id: str
    connection_id: str
    state: str


class DisconnectRequest(VisitModel):
    connection_id: NonBlank


class DisconnectResponse(VisitModel):
    session_id: str
    state: str


class DrugMentionRequest(VisitModel):
    drug: NonBlank
    speaker: Role = "doctor"
    dosage: str | None = None
    duration: str | None = None
    prescribed_by: str | None = None


class TranscriptRequest(VisitModel):
    text: NonBlank
    speaker: Role = "doctor"


class ConfusionRequest(VisitModel):
    state: ComprehensionState
    visual_evidence: str = ""
    confidence: Confidence
    drug_context: str | None = None


class AckResponse(VisitModel):
    session_id: str
    accepted: bool
    drug: str | None = None
    fired: bool = False
    prescription: Prescription | None = None
    event: ConfusionEvent | None = None
    clarification: dict[str, Any] | None = None


class ClarificationResponse(VisitModel):
    session_id: str
    active: bool
    clarification: dict[str, Any] | None = None


class DismissResponse(VisitModel):
    session_id: str
    dismissed: bool
    drug: str | None = None


class SafetyCheckRequest(VisitModel):
    session_id: NonBlank
    prescriptions: list[PrescriptionItem]
    patient_history: list[str] = Field(default_factory=list)
    role: Role = "patient"
    patient_age: int | None = Field(default=None, ge=0, le=130)


class SafetyCheckResponse(VisitModel):
    session_id: str
    safety_check: SafetyCheck
    clinician_note: str
    patient_follow_up: str
    success: bool = True


class InteractionCheckRequest(VisitModel):
    new_drug: NonBlank


class PatientRecordResponse(VisitModel):
    ok: bool
    drug_count: int
    drugs: list[str]


class GenerateNotesRequest(VisitModel):
    transcript: list[str] | str = Field(default_factory=list)
    visual_logs: list[VisualObservation] = Field(default_factory=list)

    def transcript_lines(self) -> list[str]:
        if isinstance(self.transcript, str):
            return [line for line in self.transcript.splitlines() if line.strip()]
        return [line for line in self.transcript if line and line.strip()]


class GenerateNotesResponse(VisitModel):
    notes: str
    source: str
