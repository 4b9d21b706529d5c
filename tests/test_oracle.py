import asyncio

import httpx
import pytest

from visitguard.safety.models import InteractionLookupError
from visitguard.safety.oracle import (
    INSUFFICIENT_DATA,
    KnownPairsOracle,
    RxNavInteractionOracle,
    build_oracle,
)

RXCUIS = {"warfarin": "11289", "aspirin": "1191", "ibuprofen": "5640"}


def _run(coro):
    return asyncio.run(coro)


def _interaction_payload(*pairs: tuple[str, str]) -> dict:
    return {
        "fullInteractionTypeGroup": [
            {
                "fullInteractionType": [
                    {
                        "interactionPair": [
                            {
                                "interactionConcept": [
                                    {"minConceptItem": {"name": a}},
                                    {"minConceptItem": {"name": b}},
                                ]
                            }
                        ]
                    }
                    for a, b in pairs
                ]
            }
        ]
    }


def _rxnav_handler(interactions: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/rxcui.json"):
            rxcui = RXCUIS.get(request.url.params["name"].lower())
            return httpx.Response(200, json={"idGroup": {"rxnormId": [rxcui] if rxcui else []}})
        if request.url.path.endswith("/interaction/list.json"):
            return httpx.Response(200, json=interactions)
        return httpx.Response(404)

    return handler


def _check(handler, drug: str, known: list[str], max_pairs: int = 5):
    async def scenario():
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="https://rxnav.test/REST") as client:
            oracle = RxNavInteractionOracle(client=client, max_pairs=max_pairs)
            return await oracle.check(drug, known)

    return _run(scenario())


def test_rxnav_reports_named_pairs() -> None:
    handler = _rxnav_handler(_interaction_payload(("warfarin", "aspirin")))
    result = _check(handler, "Aspirin", ["Warfarin"])
    assert result.has_conflict is True
    assert result.source == "rxnav"
    assert result.details == "Possible interaction(s): warfarin + aspirin"


def test_rxnav_truncates_long_pair_lists() -> None:
    pairs = [(f"a{i}", f"b{i}") for i in range(7)]
    result = _check(_rxnav_handler(_interaction_payload(*pairs)), "Aspirin", ["Warfarin"], max_pairs=5)
    assert result.details.endswith(" ...")
    assert result.details.count(" + ") == 5


def test_rxnav_no_interactions() -> None:
    result = _check(_rxnav_handler({}), "Aspirin", ["Warfarin"])
    assert result.has_conflict is False
    assert result.details == "No known interactions found."


def test_rxnav_insufficient_data_when_fewer_than_two_ids() -> None:
    result = _check(_rxnav_handler({}), "Aspirin", ["Unknownium"])
    assert result.has_conflict is False
    assert result.details == INSUFFICIENT_DATA
    assert _check(_rxnav_handler({}), "Aspirin", []).details == INSUFFICIENT_DATA


def test_rxnav_http_errors_raise_lookup_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(InteractionLookupError):
        _check(handler, "Aspirin", ["Warfarin"])


def test_known_pairs_oracle() -> None:
    oracle = KnownPairsOracle()
    hit = _run(oracle.check("Albuterol", ["Sertraline", "Metformin"]))
    miss = _run(oracle.check("Amoxicillin", ["Metformin"]))
    lonely = _run(oracle.check("Albuterol", []))
    assert hit.has_conflict is True and "Sertraline + Albuterol" in hit.details
    assert miss.has_conflict is False
    assert lonely.details == INSUFFICIENT_DATA


def test_build_oracle_by_name() -> None:
    assert isinstance(build_oracle("rxnav"), RxNavInteractionOracle)
    assert isinstance(build_oracle("Known_Pairs"), KnownPairsOracle)
    assert build_oracle("none") is None
    with pytest.raises(ValueError):
        build_oracle("gemini")


def test_rxnav_names_both_drugs_of_every_pair() -> None:
    payload = {
        "fullInteractionTypeGroup": [
            {
                "fullInteractionType": [
                    {
                        "interactionPair": [
                            {"interactionConcept": [
                                {"minConceptItem": {"name": "warfarin"}},
                                {"minConceptItem": {"name": "aspirin"}},
                            ]},
                            {"interactionConcept": [
                                {"minConceptItem": {"name": "warfarin"}},
                                {"minConceptItem": {"name": "ibuprofen"}},
                            ]},
                        ]
                    }
                ]
            }
        ]
    }
    result = _check(_rxnav_handler(payload), "Warfarin", ["Aspirin", "Ibuprofen"])
    assert result.details == "Possible interaction(s): warfarin + aspirin; warfarin + ibuprofen"
