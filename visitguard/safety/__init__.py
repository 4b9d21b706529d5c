"""Post-visit safety evaluation."""

from visitguard.safety.evaluator import SafetyEvaluator
from visitguard.safety.history import PatientHistoryStore, RecordParseError, merge_history
from visitguard.safety.models import (
    InteractionFinding,
    InteractionLookup,
    InteractionLookupError,
    LookupResult,
    RiskFinding,
    SafetyCheck,
)
from visitguard.safety.oracle import KnownPairsOracle, RxNavInteractionOracle, build_oracle

__all__ = [
    "InteractionFinding",
    "InteractionLookup",
    "InteractionLookupError",
    "KnownPairsOracle",
    "LookupResult",
    "PatientHistoryStore",
    "RecordParseError",
    "RiskFinding",
    "RxNavInteractionOracle",
    "SafetyCheck",
    "SafetyEvaluator",
    "build_oracle",
    "merge_history",
]
