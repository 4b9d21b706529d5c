from dataclasses import dataclass

from pydantic import Field

from visitguard.session.models import FrozenVisitModel, PrescriptionItem


class RiskFinding(FrozenVisitModel):
    type: str
    severity: str
    description: str
    drugs: list[str]


class InteractionFinding(FrozenVisitModel):
    drug: str
    interaction: str
    source: str = ""


class InteractionLookup(FrozenVisitModel):
    """Oracle response for one candidate drug against the known drugs."""

    has_conflict: bool
    details: str
    source: str


class SafetyCheck(FrozenVisitModel):
    session_id: str
    prescriptions: list[PrescriptionItem] = Field(default_factory=list)
    patient_history: list[str] = Field(default_factory=list)
    patient_age: int | None = None
    risks: list[RiskFinding] = Field(default_factory=list)
    interactions: list[InteractionFinding] = Field(default_factory=list)


class InteractionLookupError(Exception):
    """The interaction oracle could not answer for a drug."""


@dataclass(frozen=True)
class LookupResult:
    """Outcome of one oracle call: a finding, nothing, or an error."""

    drug: str
    finding: InteractionFinding | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
