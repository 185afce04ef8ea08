import logging
from datetime import timedelta

import pytest

from repforge.coaching import ActiveWorkoutSession, SessionPlanGenerator
from repforge.models import AdaptationAction, AdaptationReason, CatalogExercise
from repforge.store import TrainingStore

from conftest import CATALOG, NOW


class FailingStore(TrainingStore):
    """Store whose writes always fail."""

    def save_exercise_set(self, exercise_set):
        raise RuntimeError("database unavailable")

    def save_session_plan(self, plan):
        raise RuntimeError("database unavailable")


def _start(knowledge, store, profile):
    session = store.start_workout_session(profile.id, 'push', started_at=NOW)
    plan = SessionPlanGenerator(knowledge, store).generate_plan(
        'push', ['chest'], profile, [], session.id, profile.id, preferences={}, now=NOW
    )
    return ActiveWorkoutSession(session, plan, store)


@pytest.fixture
def active(knowledge, store, profile):
    return _start(knowledge, store, profile)


def test_set_numbers_are_dense_per_exercise(active):
    first = active.log_set('ex-bench', reps=8, weight=185, rpe=7)
    active.log_set('ex-cable-fly', reps=12, weight=40)
    second = active.log_set('ex-bench', reps=8, weight=185, rpe=8)

    assert (first.set_number, second.set_number) == (1, 2)
    assert active.sets_for_exercise('ex-cable-fly')[0].set_number == 1
    assert active.plan.exercises[0].actual_sets == 2


def test_logged_sets_are_persisted(active, store):
    exercise_set = active.log_set('ex-bench', reps=8, weight=185)
    assert store.get_exercise_sets_for_session(active.session.id) == [exercise_set]


def test_delete_renumbers_remaining_sets(active, store):
    sets = [active.log_set('ex-bench', reps=8, weight=185 + i * 5, completed_at=NOW + timedelta(minutes=i))
            for i in range(3)]

    assert active.delete_set(sets[1].id)

    remaining = active.sets_for_exercise('ex-bench')
    assert [s.set_number for s in remaining] == [1, 2]
    assert [s.weight for s in remaining] == [185, 195]
    assert [s.set_number for s in store.get_exercise_sets_for_session(active.session.id)] == [1, 2]
    assert active.plan.exercises[0].actual_sets == 2


def test_delete_unknown_set(active):
    assert not active.delete_set('missing')


def test_deleting_last_set_reopens_exercise(active):
    exercise_set = active.log_set('ex-bench', reps=8, weight=185)
    assert active.mark_exercise_complete(exercise_id='ex-bench').ok
    assert active.plan.exercises[0].is_completed

    active.delete_set(exercise_set.id)

    bench = active.plan.exercises[0]
    assert not bench.is_completed
    assert bench.actual_sets == 0


def test_update_set(active, store):
    exercise_set = active.log_set('ex-bench', reps=8, weight=185)
    updated = active.update_set(exercise_set.id, reps=6, rpe=9)

    assert (updated.reps, updated.weight, updated.rpe) == (6, 185, 9)
    assert store.get_exercise_sets_for_session(active.session.id) == [updated]
    assert active.update_set('missing', reps=1) is None


def test_plan_edits_replace_the_snapshot(active):
    before = active.plan
    chest = before.exercises_for_group('chest')

    assert active.move_exercise(chest[1].id, 'chest', move_up=True).ok
    assert active.plan is not before
    assert active.plan.exercises_for_group('chest')[0].id == chest[1].id

    failed = active.move_exercise(chest[1].id, 'chest', move_up=True)
    assert not failed.ok
    assert active.plan.exercises_for_group('chest')[0].id == chest[1].id


def test_replace_and_next_exercise(active):
    dips = next(c for c in CATALOG if c.id == 'ex-dips')
    first = active.next_planned_exercise()

    assert active.replace_exercise(first.id, dips).ok
    assert active.next_planned_exercise().exercise_id == 'ex-dips'

    active.log_set('ex-dips', reps=8, weight=45)
    active.mark_exercise_complete(exercise_id='ex-dips')
    assert active.next_planned_exercise().exercise_name == 'Incline Dumbbell Press'


def test_replace_next_exercise(active):
    pec_deck = next(c for c in CATALOG if c.id == 'ex-pec-deck')
    assert active.replace_next_exercise('chest', pec_deck).ok
    assert active.plan.exercises[0].exercise_id == 'ex-pec-deck'


def test_mutations_without_plan_fail(store, profile):
    session = store.start_workout_session(profile.id, 'push', started_at=NOW)
    active = ActiveWorkoutSession(session, None, store)
    bench = CatalogExercise(id='ex-bench', name='Barbell Bench Press', muscle_group='chest', workout_type='push')

    result = active.mark_exercise_complete(exercise=bench)
    assert not result.ok
    assert result.message == "No active plan"
    assert active.next_planned_exercise() is None

    active.log_set('ex-bench', reps=5, weight=225)
    assert len(active.completed_sets) == 1


def test_record_adaptation(active):
    adaptation = active.record_adaptation(
        'ex-bench', AdaptationReason.PAIN_REPORTED, AdaptationAction.SUBSTITUTED_EXERCISE, notes="shoulder twinge"
    )
    assert active.adaptations == (adaptation,)


def test_complete_persists_plan_and_session(active, store):
    active.log_set('ex-bench', reps=8, weight=185)
    finished = active.complete(notes="Felt strong", completed_at=NOW + timedelta(hours=1))

    assert finished.completed_at == NOW + timedelta(hours=1)
    assert store.get_session(active.session.id).notes == "Felt strong"
    assert store.get_session_plan(active.session.id) == active.plan


def test_persistence_failures_keep_local_state(knowledge, profile, caplog):
    store = FailingStore(catalog=CATALOG, profiles=[profile])
    active = _start(knowledge, store, profile)

    with caplog.at_level(logging.ERROR):
        exercise_set = active.log_set('ex-bench', reps=8, weight=185)
        finished = active.complete()

    assert active.completed_sets == (exercise_set,)
    assert finished.completed_at is not None
    assert store.get_exercise_sets_for_session(active.session.id) == []
    assert "Persistence failed" in caplog.text


def test_full_push_session_round_trip(knowledge, store, profile):
    session = store.start_workout_session(profile.id, 'push', started_at=NOW)
    plan = SessionPlanGenerator(knowledge, store).generate_plan(
        'push', ['chest', 'shoulders', 'triceps'], profile, [], session.id, profile.id, preferences={}, now=NOW
    )
    active = ActiveWorkoutSession(session, plan, store)
    assert plan.exercises

    logged = {}
    for i, entry in enumerate(plan.exercises):
        performed = CatalogExercise(id=f'done-{i}', name=entry.exercise_name, muscle_group=entry.muscle_group,
                                    workout_type='push')
        logged[entry.id] = i % 3 + 1
        for _ in range(logged[entry.id]):
            active.log_set(performed.id, reps=10, weight=100, completed_at=NOW)
        assert active.mark_exercise_complete(exercise=performed).ok

    final = active.plan
    assert all(e.is_completed for e in final.exercises)
    assert {e.id: e.actual_sets for e in final.exercises} == logged
    assert len(active.completed_sets) == sum(logged.values())
