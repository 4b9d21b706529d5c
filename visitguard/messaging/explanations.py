"""Plain-language drug explanations shown to patients in a clarification."""

from pydantic import Field

from visitguard.session.models import FrozenVisitModel


class DrugExplanation(FrozenVisitModel):
    simple_name: str
    explanation: str
    common_uses: list[str] = Field(default_factory=list)
    important_notes: list[str] = Field(default_factory=list)
    alternatives: str | None = None


_NSAID_CLASS = DrugExplanation(
    simple_name="Pain relievers (like ibuprofen)",
    explanation="Pain-relief medications like ibuprofen or naproxen. They reduce pain, swelling, and fever.",
    common_uses=["Pain relief", "Reducing inflammation", "Fever reduction"],
    important_notes=[
        "Can sometimes affect blood pressure or kidneys",
        "May cause stomach upset if taken on empty stomach",
        "Alternatives exist if you've had side effects before",
    ],
    alternatives="There are other pain relief options if NSAIDs don't work for you",
)

_ACE_CLASS = DrugExplanation(
    simple_name="Blood pressure medication",
    explanation="Medications that help lower blood pressure and protect the heart and kidneys.",
    common_uses=["High blood pressure", "Heart conditions", "Kidney protection"],
    important_notes=[
        "May interact with pain relievers (NSAIDs)",
        "Can cause dry cough in some people",
        "Your doctor monitors kidney function when combining with other medications",
    ],
)

EXPLANATIONS: dict[str, DrugExplanation] = {
    "ibuprofen": DrugExplanation(
        simple_name="Ibuprofen (Advil, Motrin)",
        explanation="A common over-the-counter pain reliever and anti-inflammatory medication.",
        common_uses=["Headaches", "Muscle pain", "Arthritis pain", "Fever"],
        important_notes=[
            "Take with food to avoid stomach upset",
            "Can affect blood pressure",
            "Not recommended for long-term use without doctor supervision",
        ],
    ),
    "naproxen": DrugExplanation(
        simple_name="Naproxen (Aleve)",
        explanation="A pain reliever similar to ibuprofen, often used for longer-lasting pain relief.",
        common_uses=["Arthritis", "Muscle pain", "Menstrual cramps"],
        important_notes=[
            "Can sometimes affect blood pressure or kidneys",
            "May interact with certain blood pressure medications",
            "Alternatives exist if you've had side effects before",
        ],
        alternatives="Your doctor can suggest other options if naproxen isn't right for you",
    ),
    "aspirin": DrugExplanation(
        simple_name="Aspirin",
        explanation="A pain reliever that can also help prevent blood clots.",
        common_uses=["Pain relief", "Heart attack prevention (low dose)", "Fever reduction"],
        important_notes=[
            "Can cause stomach irritation",
            "Not recommended for children with fevers",
            "May interact with blood thinners",
        ],
    ),
    "lisinopril": DrugExplanation(
        simple_name="Lisinopril",
        explanation="A medication used to treat high blood pressure and heart conditions.",
        common_uses=["High blood pressure", "Heart failure", "Protecting kidneys in diabetes"],
        important_notes=[
            "Can cause a dry cough in some people",
            "May interact with NSAIDs (pain relievers)",
            "Important to monitor kidney function if taking with pain medications",
        ],
    ),
    "amoxicillin": DrugExplanation(
        simple_name="Amoxicillin",
        explanation="A common antibiotic used to treat bacterial infections.",
        common_uses=["Ear infections", "Respiratory infections", "Urinary tract infections"],
        important_notes=[
            "Must finish the full course even if you feel better",
            "Can cause stomach upset - take with food",
            "Tell your doctor if you have penicillin allergies",
        ],
    ),
    "atorvastatin": DrugExplanation(
        simple_name="Atorvastatin (Lipitor)",
        explanation="A medication that helps lower cholesterol levels.",
        common_uses=["High cholesterol", "Heart disease prevention"],
        important_notes=[
            "Usually taken at bedtime",
            "May cause muscle aches in some people",
            "Avoid grapefruit juice while taking this",
        ],
    ),
    "metformin": DrugExplanation(
        simple_name="Metformin",
        explanation="A medication used to treat type 2 diabetes by helping your body use insulin better.",
        common_uses=["Type 2 diabetes", "Blood sugar control"],
        important_notes=[
            "Take with meals to reduce stomach upset",
            "Can cause vitamin B12 deficiency with long-term use",
            "Important to monitor kidney function",
        ],
    ),
}


def get_drug_explanation(drug_name: str) -> DrugExplanation | None:
    normalized = (drug_name or "").strip().lower()
    if not normalized:
        return None

    if normalized in EXPLANATIONS:
        return EXPLANATIONS[normalized]

    # "naproxen sodium" -> naproxen
    for key, explanation in EXPLANATIONS.items():
        if key in normalized or normalized in key:
            return explanation

    if "nsaid" in normalized or "nonsteroidal" in normalized:
        return _NSAID_CLASS
    if "ace inhibitor" in normalized or normalized.endswith("pril"):
        return _ACE_CLASS
    return None


def fallback_explanation(drug_name: str) -> DrugExplanation:
    normalized = (drug_name or "").lower()

    if "antibiotic" in normalized or normalized.endswith(("mycin", "cillin")):
        return DrugExplanation(
            simple_name=drug_name,
            explanation="An antibiotic medication used to treat bacterial infections.",
            common_uses=["Treating infections"],
            important_notes=["Finish the full course even if you feel better", "Take as directed by your doctor"],
        )
    if "pain" in normalized or "analgesic" in normalized:
        return DrugExplanation(
            simple_name=drug_name,
            explanation="A pain relief medication.",
            common_uses=["Pain management"],
            important_notes=["Take as directed", "Contact your doctor if pain persists"],
        )
    return DrugExplanation(
        simple_name=drug_name,
        explanation=(
            "A medication your doctor has prescribed. Ask your doctor if you have questions "
            "about how to take it or what to expect."
        ),
        common_uses=["As prescribed by your doctor"],
        important_notes=[
            "Follow your doctor's instructions",
            "Contact your doctor if you have concerns or side effects",
        ],
    )


def explain_drug(drug_name: str) -> DrugExplanation:
    return get_drug_explanation(drug_name) or fallback_explanation(drug_name)
