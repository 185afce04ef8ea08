"""Shared fixtures: bundled research data, an in-memory store and profiles."""

from datetime import datetime, timedelta

import pytest

from repforge.config import EngineConfig
from repforge.knowledge import KnowledgeBase
from repforge.models import (
    CatalogExercise,
    ExerciseSet,
    ExperienceLevel,
    Goal,
    UserProfile,
    WorkoutSession,
    new_id,
)
from repforge.store import TrainingStore

NOW = datetime(2026, 10, 18, 12, 0)

CATALOG = [
    CatalogExercise(id='ex-bench', name='Barbell Bench Press', muscle_group='chest', workout_type='push',
                    equipment=('Barbell',), is_compound=True),
    CatalogExercise(id='ex-incline-db', name='Incline Dumbbell Press', muscle_group='chest', workout_type='push',
                    equipment=('Dumbbell',), is_compound=True),
    CatalogExercise(id='ex-dips', name='Weighted Dips', muscle_group='chest', workout_type='push',
                    equipment=('Dip Station',), is_compound=True),
    CatalogExercise(id='ex-cable-fly', name='Cable Fly', muscle_group='chest', workout_type='push',
                    equipment=('Cable',)),
    CatalogExercise(id='ex-pec-deck', name='Pec Deck', muscle_group='chest', workout_type='push',
                    equipment=('Machine',)),
    CatalogExercise(id='ex-lateral', name='Dumbbell Lateral Raises', muscle_group='shoulders', workout_type='push',
                    equipment=('Dumbbell',)),
    CatalogExercise(id='ex-pushdown', name='Cable Tricep Pushdown', muscle_group='triceps', workout_type='push',
                    equipment=('Cable',)),
    CatalogExercise(id='ex-row', name='Barbell Row', muscle_group='back', workout_type='pull',
                    equipment=('Barbell',), is_compound=True),
    CatalogExercise(id='ex-pulldown', name='Lat Pulldown', muscle_group='lats', workout_type='pull',
                    equipment=('Cable', 'Machine'), is_compound=True),
    CatalogExercise(id='ex-curl', name='Barbell Curl', muscle_group='biceps', workout_type='pull',
                    equipment=('Barbell',)),
    CatalogExercise(id='ex-leg-press', name='Leg Press', muscle_group='quads', workout_type='legs',
                    equipment=('Machine',), is_compound=True),
]


@pytest.fixture(scope='session')
def knowledge():
    return KnowledgeBase.from_package()


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def profile():
    return UserProfile(
        id='user-1',
        goal=Goal.BULK,
        experience=ExperienceLevel.INTERMEDIATE,
        workout_frequency=4,
    )


@pytest.fixture
def store(profile):
    return TrainingStore(catalog=CATALOG, profiles=[profile])


@pytest.fixture
def log_session(store):
    """Add a completed session with sets to the store.

    sets: list of (exercise_id, reps, weight[, rpe]) tuples.
    """
    def _log(workout_type, started_at, sets=(), user_id='user-1', notes=None, completed=True):
        session = WorkoutSession(
            id=new_id(),
            user_id=user_id,
            workout_type=workout_type,
            started_at=started_at,
            completed_at=started_at + timedelta(hours=1) if completed else None,
            notes=notes,
        )
        store.add_session(session)

        numbers = {}
        for i, entry in enumerate(sets):
            exercise_id, reps, weight = entry[:3]
            rpe = entry[3] if len(entry) > 3 else None
            numbers[exercise_id] = numbers.get(exercise_id, 0) + 1
            store.save_exercise_set(ExerciseSet(
                id=new_id(),
                session_id=session.id,
                exercise_id=exercise_id,
                set_number=numbers[exercise_id],
                reps=reps,
                weight=weight,
                rpe=rpe,
                completed_at=started_at + timedelta(minutes=5 * (i + 1)),
            ))
        return session

    return _log
