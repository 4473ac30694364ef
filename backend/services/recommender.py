"""Rule-based treatment matching on free-text symptoms.

Every treatment category owns a fixed keyword list. A treatment scores one
point per keyword of its category found in the lower-cased symptom text and
half a point when its own description appears in the text. Scores of zero
are dropped, the rest are ranked highest first with catalog order kept for
ties, and the best three are returned.
"""

from dataclasses import dataclass
from typing import Any, Sequence

SYMPTOM_KEYWORDS = {
    'CLEANING': ('clean', 'plaque', 'tartar', 'stain', 'polish', 'hygiene', 'checkup'),
    'FILLING': ('cavity', 'hole', 'decay', 'pain', 'sensitive', 'toothache'),
    'ROOT_CANAL': ('severe pain', 'infection', 'abscess', 'swelling', 'pus'),
    'EXTRACTION': ('remove', 'pull', 'wisdom', 'broken', 'damaged beyond repair'),
    'ORTHODONTICS': ('crooked', 'misaligned', 'braces', 'straighten', 'gap', 'overbite'),
    'COSMETIC': ('whitening', 'veneer', 'aesthetic', 'smile', 'appearance', 'discolored'),
    'SURGERY': ('implant', 'gum surgery', 'jaw', 'surgical', 'bone graft'),
}
DESCRIPTION_MATCH_BONUS = 0.5
MAX_RECOMMENDATIONS = 3


@dataclass(frozen=True)
class ScoredTreatment:
    treatment: Any
    score: float


def _category_key(category) -> str:
    # Accepts TreatmentCategory members and plain strings alike.
    return str(getattr(category, 'value', category) or '').upper()


def score_treatment(symptoms_lower: str, treatment) -> float:
    keywords = SYMPTOM_KEYWORDS.get(_category_key(getattr(treatment, 'category', None)), ())
    score = float(sum(1 for keyword in keywords if keyword in symptoms_lower))

    description = getattr(treatment, 'description', None)
    if isinstance(description, str) and description and description.lower() in symptoms_lower:
        score += DESCRIPTION_MATCH_BONUS

    return score


def recommend_treatments(symptoms: str, treatments: Sequence) -> list[ScoredTreatment] | None:
    """Return up to three best-scoring treatments, or ``None`` when nothing matches.

    ``None`` is the no-match outcome callers answer with a fallback message;
    a returned list is never empty.
    """
    if not isinstance(symptoms, str):
        return None

    symptoms_lower = symptoms.lower()
    scored: list[ScoredTreatment] = []
    for treatment in treatments:
        score = score_treatment(symptoms_lower, treatment)
        if score > 0:
            scored.append(ScoredTreatment(treatment=treatment, score=score))

    if not scored:
        return None

    # sorted() is stable, so equal scores keep catalog order
    ranked = sorted(scored, key=lambda item: item.score, reverse=True)
    return ranked[:MAX_RECOMMENDATIONS]
