from visitguard.messaging import generator
from visitguard.safety.models import InteractionFinding, RiskFinding, SafetyCheck
from visitguard.session.models import PrescriptionItem


def _check(*drugs: str, risks=(), interactions=(), age=None) -> SafetyCheck:
    return SafetyCheck(
        session_id="s1",
        prescriptions=[PrescriptionItem(drug=d) for d in drugs],
        patient_age=age,
        risks=list(risks),
        interactions=list(interactions),
    )


RENAL = RiskFinding(
    type="renal_risk",
    severity="moderate",
    description="ACE inhibitor + NSAID combination may increase renal risk",
    drugs=["Lisinopril", "Naproxen"],
)


def test_no_risk_defaults() -> None:
    check = _check("Amoxicillin")
    assert generator.clinician_note(check) == generator.STANDARD_FOLLOW_UP
    follow_up = generator.patient_follow_up(check)
    assert follow_up.startswith(generator.GENERIC_CONTACT)
    assert follow_up.endswith(generator.FULL_COURSE)


def test_renal_sentence_names_pair() -> None:
    note = generator.clinician_note(_check("Lisinopril", "Naproxen", risks=[RENAL]))
    assert note == (
        "For patients on Lisinopril, consider renal monitoring or follow-up if "
        "Naproxen use extends beyond the prescribed duration."
    )


def test_sentences_follow_priority_order() -> None:
    interactions = [
        InteractionFinding(drug="Naproxen", interaction=f"pair {i}", source="test") for i in range(4)
    ]
    note = generator.clinician_note(_check("Lisinopril", "Naproxen", risks=[RENAL], interactions=interactions, age=72))
    renal_at = note.index("For patients on Lisinopril")
    review_at = note.index("Review potential interactions: pair 0, pair 1, pair 2.")
    age_at = note.index(generator.ELDERLY_NOTE)
    assert renal_at < review_at < age_at
    assert "pair 3" not in note
    assert generator.STANDARD_FOLLOW_UP not in note


def test_age_threshold_is_strictly_greater() -> None:
    assert generator.clinician_note(_check("Amoxicillin", age=65)) == generator.STANDARD_FOLLOW_UP
    assert generator.clinician_note(_check("Amoxicillin", age=66)) == generator.ELDERLY_NOTE


def test_bleeding_sentence() -> None:
    bleeding = RiskFinding(type="bleeding_risk", severity="high", description="", drugs=["Warfarin", "Ibuprofen"])
    note = generator.clinician_note(_check("Warfarin", "Ibuprofen", risks=[bleeding]))
    assert "Warfarin" in note and "Ibuprofen" in note
    assert "bleeding" in note


def test_patient_follow_up_for_ace_and_nsaid() -> None:
    text = generator.patient_follow_up(_check("Lisinopril", "Naproxen"))
    assert text == " ".join([generator.NSAID_WATCH, generator.KIDNEY_WATCH, generator.FULL_COURSE])


def test_patient_follow_up_nsaid_only() -> None:
    text = generator.patient_follow_up(_check("Ibuprofen"))
    assert text == f"{generator.NSAID_WATCH} {generator.FULL_COURSE}"


def test_patient_follow_up_without_prescriptions() -> None:
    assert generator.patient_follow_up(_check()) == generator.GENERIC_CONTACT
