"""Drug-interaction lookup oracles.

An oracle answers ``check(candidate_drug, known_drugs)`` with an
:class:`InteractionLookup`. Too little data yields ``has_conflict=False``
with an "insufficient data" message; transport failures raise
:class:`InteractionLookupError` and are isolated by the evaluator.
"""

from typing import Any, Protocol, Sequence

import httpx

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.safety.models import InteractionLookup, InteractionLookupError

logger = get_logger(__name__)

INSUFFICIENT_DATA = "Insufficient drug data to check."
NO_INTERACTIONS = "No known interactions found."


class InteractionOracle(Protocol):
    async def check(self, candidate_drug: str, known_drugs: Sequence[str]) -> InteractionLookup: ...


def _names(candidate_drug: str, known_drugs: Sequence[str]) -> list[str]:
    return [d.strip() for d in [candidate_drug, *known_drugs] if d and d.strip()]


class RxNavInteractionOracle:
    """RxNorm-backed lookup: resolve RxCUIs, then list interactions between them."""

    source = "rxnav"

    def __init__(
        self,
        base_url: str = settings.RXNAV_BASE_URL,
        timeout: float = settings.INTERACTION_LOOKUP_TIMEOUT,
        max_pairs: int = settings.INTERACTION_MAX_PAIRS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_pairs = max_pairs
        self._client = client

    async def check(self, candidate_drug: str, known_drugs: Sequence[str]) -> InteractionLookup:
        if self._client is not None:
            return await self._check_with(self._client, candidate_drug, known_drugs)
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
            return await self._check_with(client, candidate_drug, known_drugs)

    async def _check_with(
        self,
        client: httpx.AsyncClient,
        candidate_drug: str,
        known_drugs: Sequence[str],
    ) -> InteractionLookup:
        try:
            rxcuis = []
            for name in _names(candidate_drug, known_drugs):
                rxcui = await self._rxcui(client, name)
                if rxcui:
                    rxcuis.append(rxcui)
            if len(rxcuis) < 2:
                return InteractionLookup(has_conflict=False, details=INSUFFICIENT_DATA, source=self.source)

            response = await client.get("/interaction/list.json", params={"rxcuis": " ".join(rxcuis)})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise InteractionLookupError(f"RxNav lookup failed for {candidate_drug}: {exc}") from exc

        pairs = self._interaction_pairs(payload)
        logger.debug("[oracle] rxnav drug=%s rxcuis=%s pairs=%s", candidate_drug, rxcuis, len(pairs))
        return self._summarize(pairs)

    async def _rxcui(self, client: httpx.AsyncClient, name: str) -> str | None:
        response = await client.get("/rxcui.json", params={"name": name})
        response.raise_for_status()
        ids = (response.json().get("idGroup") or {}).get("rxnormId")
        if isinstance(ids, list):
            return str(ids[0]) if ids else None
        return str(ids) if ids else None

    @staticmethod
    def _interaction_pairs(payload: dict[str, Any]) -> list[str]:
        pairs: list[str] = []
        for group in payload.get("fullInteractionTypeGroup") or []:
            for interaction_type in group.get("fullInteractionType") or []:
                for pair in interaction_type.get("interactionPair") or []:
                    names = [
                        (concept.get("minConceptItem") or {}).get("name")
                        for concept in pair.get("interactionConcept") or []
                    ]
                    label = " + ".join(n for n in names if n)
                    if label:
                        pairs.append(label)
        return pairs

    def _summarize(self, pairs: list[str]) -> InteractionLookup:
        if not pairs:
            return InteractionLookup(has_conflict=False, details=NO_INTERACTIONS, source=self.source)
        shown = "; ".join(pairs[: self.max_pairs])
        more = " ..." if len(pairs) > self.max_pairs else ""
        return InteractionLookup(
            has_conflict=True,
            details=f"Possible interaction(s): {shown}{more}",
            source=self.source,
        )


KNOWN_UNSAFE_PAIRS: tuple[tuple[str, str, str], ...] = (
    ("sertraline", "albuterol", "Sertraline + Albuterol: known adverse combination"),
    ("ibuprofen", "lisinopril", "Ibuprofen + Lisinopril: NSAIDs may reduce ACE inhibitor effect and strain kidneys"),
    ("naproxen", "lisinopril", "Naproxen + Lisinopril: NSAIDs may reduce ACE inhibitor effect and strain kidneys"),
    ("warfarin", "aspirin", "Warfarin + Aspirin: increased bleeding risk"),
    ("sertraline", "tramadol", "Sertraline + Tramadol: risk of serotonin syndrome"),
)


class KnownPairsOracle:
    """Offline oracle over a fixed table of unsafe pairs."""

    source = "known_pairs"

    def __init__(self, pairs: Sequence[tuple[str, str, str]] = KNOWN_UNSAFE_PAIRS) -> None:
        self.pairs = tuple(pairs)

    async def check(self, candidate_drug: str, known_drugs: Sequence[str]) -> InteractionLookup:
        names = _names(candidate_drug, known_drugs)
        if len(names) < 2:
            return InteractionLookup(has_conflict=False, details=INSUFFICIENT_DATA, source=self.source)

        candidate = names[0].lower()
        known = {n.lower() for n in names[1:]}
        hits = [
            reason
            for a, b, reason in self.pairs
            if (candidate == a and b in known) or (candidate == b and a in known)
        ]
        if not hits:
            return InteractionLookup(has_conflict=False, details=NO_INTERACTIONS, source=self.source)
        return InteractionLookup(
            has_conflict=True,
            details=f"Possible interaction(s): {'; '.join(hits)}",
            source=self.source,
        )


def build_oracle(name: str = settings.INTERACTION_ORACLE) -> InteractionOracle | None:
    key = (name or "").strip().lower()
    if key in {"", "none", "off"}:
        return None
    if key == "rxnav":
        return RxNavInteractionOracle()
    if key == "known_pairs":
        return KnownPairsOracle()
    raise ValueError(f"Unknown interaction oracle: {name}")
