import pytest

from repforge.coaching import build_order_note
from repforge.errors import KnowledgeDataError
from repforge.knowledge import KnowledgeBase, goal_weighted_score
from repforge.models import ExperienceLevel, Goal, GymType


def test_bundled_data_covers_all_groups(knowledge):
    assert set(knowledge.muscle_groups) == {
        'chest', 'back', 'shoulders', 'quads', 'hamstrings',
        'glutes', 'biceps', 'triceps', 'calves', 'core',
    }


def test_exercise_kinds(knowledge):
    assert len(knowledge.get_exercises('chest', 'compound')) == 3
    assert len(knowledge.get_exercises('chest', 'accessory')) == 3
    assert knowledge.get_exercises('calves', 'compound') == []
    with pytest.raises(ValueError):
        knowledge.get_exercises('chest', 'cardio')


def test_unknown_group_is_empty(knowledge):
    assert knowledge.get_exercises('forearms') == []
    assert knowledge.get_exercises_ranked('forearms', Goal.BULK) == []


def test_ranking_for_bulk_is_stable(knowledge):
    names = [d.name for d in knowledge.get_exercises_ranked('pecs', Goal.BULK)]
    assert names == [
        'Barbell Bench Press (Flat)',
        'Incline Dumbbell Press',
        'Weighted Dips',
        'Cable Fly',
        'Pec Deck (Machine Fly)',
        'Incline Dumbbell Fly',
    ]


def test_goal_weighted_score(knowledge):
    bench = knowledge.find_exercise('Barbell Bench Press')
    assert goal_weighted_score(bench, Goal.BULK) == 4
    assert goal_weighted_score(bench, Goal.CUT) == (4 * 2 + 3) // 3
    assert goal_weighted_score(bench, Goal.MAINTAIN) == 4


def test_find_exercise(knowledge):
    assert knowledge.find_exercise('barbell bench press').name == 'Barbell Bench Press (Flat)'
    assert knowledge.find_exercise('Pec Deck').name == 'Pec Deck (Machine Fly)'
    assert knowledge.find_exercise('Underwater Basket Weaving') is None
    assert knowledge.find_exercise('') is None


def test_volume_landmarks(knowledge):
    landmarks = knowledge.get_volume_landmarks('chest', Goal.BULK, ExperienceLevel.INTERMEDIATE)
    assert landmarks.sets_per_week_range == (12, 18)
    assert landmarks.exercise_count == 3
    assert 'contentReference' not in landmarks.intensity_guidance

    assert knowledge.get_volume_landmarks('back', Goal.BULK, ExperienceLevel.INTERMEDIATE).sets_per_week_range == (12, 20)
    assert knowledge.get_volume_landmarks('calves', Goal.BULK, ExperienceLevel.INTERMEDIATE) is None


def test_research_text_is_sanitized(knowledge):
    principles = knowledge.get_ordering_principles()
    assert 'contentReference' not in principles.optimal_sequence
    assert principles.optimal_sequence.startswith('Compound lifts first')


def test_equipment_availability(knowledge):
    cable_fly = knowledge.find_exercise('Cable Fly')
    bench = knowledge.find_exercise('Barbell Bench Press')
    assert knowledge.is_equipment_available(cable_fly, GymType.COMMERCIAL)
    assert not knowledge.is_equipment_available(cable_fly, GymType.MINIMAL)
    assert knowledge.is_equipment_available(bench, GymType.HOME)

    minimal = knowledge.get_exercises_for_equipment('chest', GymType.MINIMAL, Goal.BULK)
    assert [d.name for d in minimal] == ['Incline Dumbbell Press', 'Incline Dumbbell Fly']


def test_rest_days(knowledge):
    assert knowledge.recommended_rest_days('calf') == 1
    assert knowledge.recommended_rest_days('chest') == 2


def test_order_note(knowledge):
    note = build_order_note(knowledge, ['chest', 'shoulders', 'triceps'])
    assert note == (
        "Recommended order: Chest → Shoulders → Triceps. "
        "Rationale: Compound lifts first while fatigue is lowest, then accessories."
    )


def test_order_note_without_research():
    empty = KnowledgeBase.from_dicts({}, {})
    assert build_order_note(empty, ['upper_back']) == (
        "Recommended order: Upper Back. Rationale: Compound lifts first, then accessories."
    )


def test_malformed_data_raises():
    with pytest.raises(KnowledgeDataError):
        KnowledgeBase.from_dicts({'chest': {'compound': [{'equipment': 'Barbell'}]}})
    with pytest.raises(KnowledgeDataError):
        KnowledgeBase.from_dicts({}, {'volume_guidelines': {'chest': {'bulk': {'beginner': '8-12'}}}})


def test_missing_fields_default_to_empty():
    kb = KnowledgeBase.from_dicts({'chest': {'accessory': [{'name': 'Cable Fly'}]}})
    detail = kb.find_exercise('cable fly')
    assert detail.equipment == ''
    assert detail.effectiveness.hypertrophy_score == 1
