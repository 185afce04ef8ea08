from datetime import timedelta
from pathlib import Path

import pytest

from repforge.models import ExerciseSet, ExperienceLevel, Goal, PreferenceLevel
from repforge.store import TrainingStore, profile_from_dict

from conftest import NOW

SAMPLE_STORE = Path(__file__).parent.parent / 'config' / 'sample_store.yaml'


def test_load_sample_fixture():
    store = TrainingStore.from_yaml(SAMPLE_STORE)

    profile = store.get_profile('demo')
    assert profile.goal == Goal.BULK
    assert profile.experience == ExperienceLevel.INTERMEDIATE
    assert [e.id for e in store.get_exercises_by_muscle_group('push', 'Chest')] == [
        'ex-bench', 'ex-incline-db', 'ex-cable-fly', 'ex-pec-deck',
    ]
    assert [s.id for s in store.get_recent_sessions('demo')] == ['s-2', 's-1']
    assert len(store.get_exercise_sets_for_session('s-1')) == 4
    assert store.get_exercise_preferences('demo')[0].preference_level == PreferenceLevel.FAVORITE


def test_profile_defaults():
    profile = profile_from_dict({'id': 7, 'goal': 'CUT', 'injuries': 'bad knee'})
    assert profile.id == '7'
    assert profile.goal == Goal.CUT
    assert profile.experience == ExperienceLevel.BEGINNER
    assert profile.injuries == ['bad knee']


def test_catalog_lookup_by_alias(store):
    assert [e.id for e in store.get_exercises_by_muscle_group(None, 'back')] == ['ex-row', 'ex-pulldown']
    assert store.get_exercises_by_muscle_group('legs', 'chest') == []


def test_sessions_between_newest_first(store, log_session):
    older = log_session('push', NOW - timedelta(days=3))
    newer = log_session('pull', NOW - timedelta(days=1))
    log_session('legs', NOW - timedelta(days=1), user_id='someone-else')

    assert store.get_sessions_between('user-1', NOW - timedelta(days=7), NOW) == [newer, older]


def test_exercise_history_is_per_user(store, log_session):
    log_session('push', NOW - timedelta(days=2), [('ex-bench', 8, 185)] * 2)
    log_session('push', NOW - timedelta(days=1), [('ex-bench', 5, 225)], user_id='someone-else')

    history = store.get_exercise_history('user-1', 'ex-bench')
    assert [s.weight for s in history] == [185, 185]


def test_updating_unknown_set_raises(store):
    with pytest.raises(KeyError):
        store.update_exercise_set(ExerciseSet(id='missing', session_id='x', exercise_id='ex-bench',
                                              set_number=1, reps=5, weight=100, completed_at=NOW))
    with pytest.raises(KeyError):
        store.complete_workout_session('missing')
