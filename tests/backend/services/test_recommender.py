from types import SimpleNamespace

from backend.models import TreatmentCategory
from backend.services.recommender import DESCRIPTION_MATCH_BONUS, recommend_treatments, score_treatment


def _treatment(name: str, category, description: str | None = None):
    return SimpleNamespace(name=name, category=category, description=description)


def test_recommend_treatments_returns_none_without_keyword_match() -> None:
    catalog = [_treatment('Cleaning', TreatmentCategory.CLEANING)]

    assert recommend_treatments('I would like to ask about parking', catalog) is None


def test_recommend_treatments_returns_none_for_empty_catalog_or_non_text() -> None:
    assert recommend_treatments('I have a cavity', []) is None
    assert recommend_treatments(None, [_treatment('Filling', TreatmentCategory.FILLING)]) is None


def test_score_treatment_counts_each_category_keyword_once() -> None:
    filling = _treatment('Filling', TreatmentCategory.FILLING)

    assert score_treatment('sensitive tooth with a cavity and some decay', filling) == 3.0


def test_score_treatment_adds_bonus_when_description_appears_in_symptoms() -> None:
    whitening = _treatment('Whitening', TreatmentCategory.COSMETIC, description='Teeth whitening')

    assert score_treatment('i want teeth whitening', whitening) == 1.0 + DESCRIPTION_MATCH_BONUS


def test_score_treatment_accepts_plain_string_category() -> None:
    assert score_treatment('crooked teeth', _treatment('Braces', 'orthodontics')) == 1.0


def test_recommend_treatments_ranks_by_score_and_keeps_catalog_order_for_ties() -> None:
    first_filling = _treatment('Amalgam Filling', TreatmentCategory.FILLING)
    root_canal = _treatment('Root Canal', TreatmentCategory.ROOT_CANAL)
    second_filling = _treatment('Composite Filling', TreatmentCategory.FILLING)
    cleaning = _treatment('Cleaning', TreatmentCategory.CLEANING)

    matches = recommend_treatments(
        'Severe pain and swelling, maybe infection',
        [first_filling, cleaning, root_canal, second_filling],
    )

    assert [match.treatment.name for match in matches] == ['Root Canal', 'Amalgam Filling', 'Composite Filling']
    assert [match.score for match in matches] == [3.0, 1.0, 1.0]


def test_recommend_treatments_returns_at_most_three() -> None:
    catalog = [_treatment(f'Filling {index}', TreatmentCategory.FILLING) for index in range(5)]

    matches = recommend_treatments('toothache', catalog)

    assert [match.treatment.name for match in matches] == ['Filling 0', 'Filling 1', 'Filling 2']
