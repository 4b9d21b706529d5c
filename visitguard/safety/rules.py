"""Fixed drug-class interaction rules.

Classes match by case-insensitive substring of the prescribed drug name.
Each rule reports at most one representative pair.
"""

from dataclasses import dataclass
from typing import Sequence

from visitguard.safety.models import RiskFinding
from visitguard.session.models import PrescriptionItem


@dataclass(frozen=True)
class DrugClass:
    name: str
    patterns: tuple[str, ...]

    def matches(self, drug: str) -> bool:
        lowered = (drug or "").lower()
        return any(p in lowered for p in self.patterns)

    def first_in(self, prescriptions: Sequence[PrescriptionItem]) -> PrescriptionItem | None:
        return next((p for p in prescriptions if self.matches(p.drug)), None)


ACE_INHIBITORS = DrugClass(
    "ACE inhibitor",
    ("lisinopril", "enalapril", "ramipril", "captopril", "benazepril", "pril", "ace inhibitor"),
)
NSAIDS = DrugClass(
    "NSAID",
    ("naproxen", "ibuprofen", "diclofenac", "meloxicam", "celecoxib", "ketorolac", "nsaid"),
)
ANTICOAGULANTS = DrugClass(
    "anticoagulant",
    ("warfarin", "apixaban", "rivaroxaban", "dabigatran", "clopidogrel", "anticoagulant"),
)


@dataclass(frozen=True)
class InteractionRule:
    risk_type: str
    severity: str
    description: str
    first: DrugClass
    second: DrugClass

    def apply(self, prescriptions: Sequence[PrescriptionItem]) -> RiskFinding | None:
        left = self.first.first_in(prescriptions)
        if left is None:
            return None
        right = next(
            (p for p in prescriptions if p is not left and self.second.matches(p.drug)),
            None,
        )
        if right is None:
            return None
        return RiskFinding(
            type=self.risk_type,
            severity=self.severity,
            description=self.description,
            drugs=[left.drug, right.drug],
        )


RENAL_RISK = "renal_risk"
BLEEDING_RISK = "bleeding_risk"

RULES: tuple[InteractionRule, ...] = (
    InteractionRule(
        RENAL_RISK,
        "moderate",
        "ACE inhibitor + NSAID combination may increase renal risk",
        ACE_INHIBITORS,
        NSAIDS,
    ),
    InteractionRule(
        BLEEDING_RISK,
        "high",
        "Anticoagulant + NSAID combination may increase bleeding risk",
        ANTICOAGULANTS,
        NSAIDS,
    ),
)


def apply_rules(
    prescriptions: Sequence[PrescriptionItem],
    rules: Sequence[InteractionRule] = RULES,
) -> list[RiskFinding]:
    findings = []
    for rule in rules:
        finding = rule.apply(prescriptions)
        if finding is not None:
            findings.append(finding)
    return findings


def is_nsaid(drug: str) -> bool:
    return NSAIDS.matches(drug)


def is_ace_inhibitor(drug: str) -> bool:
    return ACE_INHIBITORS.matches(drug)
