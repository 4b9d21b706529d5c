"""Live-visit session state, correlation and ingestion."""

from visitguard.session.correlator import (
    Clarification,
    ClarificationDecision,
    ClarificationTracker,
    attribute_drug,
    evaluate_clarification,
)
from visitguard.session.debouncer import PrescriptionDebouncer
from visitguard.session.monitor import IngestAck, VisitMonitor
from visitguard.session.store import SessionStore

__all__ = [
    "Clarification",
    "ClarificationDecision",
    "ClarificationTracker",
    "IngestAck",
    "PrescriptionDebouncer",
    "SessionStore",
    "VisitMonitor",
    "attribute_drug",
    "evaluate_clarification",
]
