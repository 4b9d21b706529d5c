from visitguard.safety.rules import BLEEDING_RISK, RENAL_RISK, apply_rules, is_ace_inhibitor, is_nsaid
from visitguard.session.models import PrescriptionItem


def _items(*drugs: str) -> list[PrescriptionItem]:
    return [PrescriptionItem(drug=d) for d in drugs]


def test_renal_risk_reports_single_representative_pair() -> None:
    findings = apply_rules(_items("Lisinopril", "Naproxen"))
    assert len(findings) == 1
    assert findings[0].type == RENAL_RISK
    assert findings[0].severity == "moderate"
    assert findings[0].drugs == ["Lisinopril", "Naproxen"]


def test_only_first_matching_pair_per_rule() -> None:
    findings = apply_rules(_items("Ibuprofen", "Enalapril", "Naproxen", "Lisinopril"))
    assert [f.drugs for f in findings] == [["Enalapril", "Ibuprofen"]]


def test_bleeding_risk_follows_renal_risk() -> None:
    findings = apply_rules(_items("Warfarin", "Lisinopril", "Ibuprofen"))
    assert [f.type for f in findings] == [RENAL_RISK, BLEEDING_RISK]
    assert findings[1].severity == "high"
    assert findings[1].drugs == ["Warfarin", "Ibuprofen"]


def test_no_findings_for_unrelated_drugs() -> None:
    assert apply_rules(_items("Amoxicillin")) == []
    assert apply_rules([]) == []


def test_class_matching_is_case_insensitive_substring() -> None:
    assert is_ace_inhibitor("RAMIPRIL 5mg")
    assert is_nsaid("naproxen sodium")
    assert not is_ace_inhibitor("Acetaminophen")
    assert apply_rules(_items("Acetaminophen", "Naproxen")) == []
