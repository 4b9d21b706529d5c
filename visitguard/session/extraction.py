"""Drug-name extraction from transcribed speech and free-text patient records."""

import re

from visitguard.session.models import display_drug_name

COMMON_DRUGS: tuple[str, ...] = (
    "lisinopril", "enalapril", "ramipril", "losartan", "valsartan", "metoprolol",
    "propranolol", "atenolol", "bisoprolol", "carvedilol", "labetalol", "amlodipine",
    "diltiazem", "verapamil", "hydrochlorothiazide", "furosemide",
    "atorvastatin", "simvastatin", "pravastatin", "rosuvastatin",
    "omeprazole", "metformin", "glipizide", "glyburide", "pioglitazone", "sitagliptin", "insulin",
    "levothyroxine", "albuterol",
    "sertraline", "fluoxetine", "paroxetine", "citalopram", "escitalopram", "venlafaxine",
    "bupropion", "duloxetine", "amitriptyline", "nortriptyline",
    "ibuprofen", "naproxen", "acetaminophen", "aspirin", "tramadol", "oxycodone",
    "hydrocodone", "morphine", "codeine", "gabapentin", "pregabalin",
    "warfarin", "clopidogrel", "apixaban", "rivaroxaban",
    "zolpidem", "lorazepam", "alprazolam", "diazepam", "clonazepam",
    "prednisone", "dexamethasone", "hydrocortisone", "methotrexate",
    "donepezil", "memantine", "levodopa", "carbidopa", "ropinirole",
    "tamsulosin", "finasteride", "sildenafil", "tadalafil",
    "amoxicillin", "penicillin", "cephalexin", "azithromycin", "doxycycline", "tetracycline",
    "ciprofloxacin", "levofloxacin", "erythromycin", "clarithromycin", "metronidazole",
    "fluconazole", "acyclovir", "valacyclovir", "oseltamivir",
)

_COMMON_DRUG_PATTERNS = tuple(
    (drug, re.compile(rf"\b{re.escape(drug)}\b", re.IGNORECASE)) for drug in COMMON_DRUGS
)

_SUFFIX_PATTERN = re.compile(
    r"(?:^|[\s,;])([A-Za-z][a-zA-Z]*(?:olol|pril|cin|dipine|statin|cycline|mycin|prazole|formin"
    r"|artan|azepam|oxetine|olone|ide|tide|dine|pine|done|tadine))(?=[\s,;.]|$)",
    re.IGNORECASE,
)
_DOSE_PATTERN = re.compile(
    r"^\s*([A-Z][a-zA-Z\-]+)\s+(?:\d+\s*)?(?:mg|mcg|mL|tablet|tablets|capsule|capsules|daily|twice|once)\b",
    re.IGNORECASE | re.MULTILINE,
)
# Ordinary words the suffix heuristic would otherwise pick up.
_NOT_DRUGS = frozenset({
    "side", "inside", "outside", "provide", "decide", "guide", "wide", "aside", "beside",
    "ride", "pride", "divide", "include", "outcome", "medicine", "pine", "spine", "done",
    "patient", "take", "takes", "taking",
})


def extract_drugs(transcript: str) -> list[str]:
    """Known drug names spoken in ``transcript``, display-cased, in list order."""
    if not transcript or len(transcript) < 3:
        return []
    return [display_drug_name(drug) for drug, pattern in _COMMON_DRUG_PATTERNS if pattern.search(transcript)]


def extract_drugs_from_text(text: str) -> list[str]:
    """Heuristic drug names from a patient record: common suffixes and dose lines."""
    if not text or not isinstance(text, str):
        return []
    seen: set[str] = set()
    drugs: list[str] = []

    def _keep(name: str) -> None:
        name = name.strip()
        key = name.lower()
        if len(name) <= 2 or key in seen or key in _NOT_DRUGS:
            return
        seen.add(key)
        drugs.append(name)

    for match in _SUFFIX_PATTERN.finditer(text):
        _keep(match.group(1))
    for match in _DOSE_PATTERN.finditer(text):
        _keep(match.group(1))
    return drugs
