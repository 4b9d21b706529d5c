"""Deterministic post-visit narratives for the clinician and the patient.

Both functions are pure over a :class:`SafetyCheck` and never return an empty
string for a check with at least one prescription.
"""

from visitguard.config.settings import settings
from visitguard.safety.models import RiskFinding, SafetyCheck
from visitguard.safety.rules import BLEEDING_RISK, RENAL_RISK, is_ace_inhibitor, is_nsaid

STANDARD_FOLLOW_UP = "Standard follow-up recommended. Monitor patient response to prescribed medications."
ELDERLY_NOTE = "Patient is over 65 - consider reduced dosing or closer monitoring for new medications."

NSAID_WATCH = (
    "If pain lasts beyond the prescribed duration or you notice swelling, reduced urination, "
    "or unusual symptoms, contact your provider immediately."
)
KIDNEY_WATCH = (
    "Since you're taking both blood pressure medication and pain medication, watch for signs of "
    "kidney issues: reduced urination, swelling in your legs or feet, or unusual fatigue. "
    "Contact your provider if these occur."
)
GENERIC_CONTACT = (
    "If you experience any unexpected side effects or your symptoms don't improve as expected, "
    "contact your provider."
)
FULL_COURSE = (
    "Remember to take your medications as prescribed and complete the full course unless your "
    "doctor advises otherwise."
)


def _first_risk(check: SafetyCheck, risk_type: str) -> RiskFinding | None:
    return next((r for r in check.risks if r.type == risk_type and len(r.drugs) >= 2), None)


def clinician_note(check: SafetyCheck) -> str:
    notes: list[str] = []

    renal = _first_risk(check, RENAL_RISK)
    if renal is not None:
        ace_drug, nsaid_drug = renal.drugs[0], renal.drugs[1]
        notes.append(
            f"For patients on {ace_drug}, consider renal monitoring or follow-up if "
            f"{nsaid_drug} use extends beyond the prescribed duration."
        )

    bleeding = _first_risk(check, BLEEDING_RISK)
    if bleeding is not None:
        notes.append(
            f"Patient is on {bleeding.drugs[0]} with {bleeding.drugs[1]} - review bleeding risk "
            f"and advise on signs of bleeding."
        )

    if check.interactions:
        listed = ", ".join(i.interaction for i in check.interactions[:3])
        notes.append(f"Review potential interactions: {listed}.")

    if check.patient_age is not None and check.patient_age > settings.ELDERLY_AGE_THRESHOLD:
        notes.append(ELDERLY_NOTE)

    if not notes:
        notes.append(STANDARD_FOLLOW_UP)
    return " ".join(notes)


def patient_follow_up(check: SafetyCheck) -> str:
    drugs = [p.drug for p in check.prescriptions]
    has_nsaid = any(is_nsaid(d) for d in drugs)
    has_ace = any(is_ace_inhibitor(d) for d in drugs)

    messages: list[str] = []
    if has_nsaid:
        messages.append(NSAID_WATCH)
    if has_ace and has_nsaid:
        messages.append(KIDNEY_WATCH)
    if not messages:
        messages.append(GENERIC_CONTACT)
    if drugs:
        messages.append(FULL_COURSE)
    return " ".join(messages)
