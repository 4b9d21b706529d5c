"""Post-visit safety evaluation: rule pass plus interaction lookups."""

import asyncio
from typing import Sequence

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.safety.models import InteractionFinding, LookupResult, SafetyCheck
from visitguard.safety.oracle import InteractionOracle
from visitguard.safety.rules import RULES, InteractionRule, apply_rules
from visitguard.session.models import PrescriptionItem

logger = get_logger(__name__)


class SafetyEvaluator:
    def __init__(
        self,
        oracle: InteractionOracle | None = None,
        lookup_timeout: float = settings.INTERACTION_LOOKUP_TIMEOUT,
        rules: Sequence[InteractionRule] = RULES,
    ) -> None:
        self.oracle = oracle
        self.lookup_timeout = lookup_timeout
        self.rules = tuple(rules)

    async def lookup(self, drug: str, known_drugs: Sequence[str]) -> LookupResult:
        """One oracle call for ``drug``; failures come back as an error result."""
        if self.oracle is None:
            return LookupResult(drug=drug)
        try:
            response = await asyncio.wait_for(
                self.oracle.check(drug, list(known_drugs)),
                timeout=self.lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[safety] interaction lookup timed out drug=%s after %.1fs", drug, self.lookup_timeout)
            return LookupResult(drug=drug, error="timeout")
        except Exception as exc:
            logger.warning("[safety] interaction lookup failed drug=%s: %s", drug, exc)
            return LookupResult(drug=drug, error=str(exc) or exc.__class__.__name__)

        if not response.has_conflict:
            return LookupResult(drug=drug)
        return LookupResult(
            drug=drug,
            finding=InteractionFinding(drug=drug, interaction=response.details, source=response.source),
        )

    async def assess(
        self,
        session_id: str,
        prescriptions: Sequence[PrescriptionItem],
        patient_history: Sequence[str],
        patient_age: int | None = None,
    ) -> SafetyCheck:
        items = list(prescriptions)
        history = list(patient_history)
        risks = apply_rules(items, self.rules)

        interactions: list[InteractionFinding] = []
        if history and items and self.oracle is not None:
            results = await asyncio.gather(*(self.lookup(item.drug, history) for item in items))
            failed = [r.drug for r in results if not r.ok]
            if failed:
                logger.warning("[safety] %s lookup(s) omitted session_id=%s drugs=%s", len(failed), session_id, failed)
            interactions = [r.finding for r in results if r.finding is not None]

        logger.info(
            "[safety] assessed session_id=%s prescriptions=%s history=%s risks=%s interactions=%s",
            session_id,
            len(items),
            len(history),
            len(risks),
            len(interactions),
        )
        return SafetyCheck(
            session_id=session_id,
            prescriptions=items,
            patient_history=history,
            patient_age=patient_age,
            risks=risks,
            interactions=interactions,
        )
