from datetime import timedelta

from repforge.coaching import VolumeCalculator
from repforge.coaching.volume import load_sets_by_session, muscle_groups_for_workout_type
from repforge.models import ExperienceLevel, Goal, UserProfile

from conftest import NOW


def _back_sets(count):
    return [('ex-row', 10, 135)] * count


def test_workout_type_groups():
    assert muscle_groups_for_workout_type('Push Day') == ['chest', 'shoulders', 'triceps']
    assert muscle_groups_for_workout_type('legs') == ['quads', 'hamstrings', 'glutes', 'calves']
    assert muscle_groups_for_workout_type('Lats') == ['back']


def test_weekly_sets_reduce_todays_target(knowledge, store, profile, log_session):
    first = log_session('pull', NOW - timedelta(days=3), _back_sets(6))
    second = log_session('pull', NOW - timedelta(days=1), _back_sets(5))

    calc = VolumeCalculator(knowledge, store)
    [target] = calc.calculate_volume_targets(['back'], profile, [first, second], NOW)

    assert target.muscle_group == 'back'
    assert target.weekly_target == 16
    assert target.completed_this_week == 11
    assert target.target_sets_today == 5
    assert target.reasoning == "You've done 11/16 sets this week for back"


def test_old_sessions_are_ignored(knowledge, store, profile, log_session):
    old = log_session('pull', NOW - timedelta(days=8), _back_sets(6))

    [target] = VolumeCalculator(knowledge, store).calculate_volume_targets(['back'], profile, [old], NOW)
    assert target.completed_this_week == 0
    assert target.target_sets_today == 16


def test_aliases_count_toward_canonical_group(knowledge, store, profile, log_session):
    session = log_session('pull', NOW - timedelta(days=1), [('ex-pulldown', 12, 120)] * 3)

    [target] = VolumeCalculator(knowledge, store).calculate_volume_targets(['lats'], profile, [session], NOW)
    assert target.muscle_group == 'back'
    assert target.completed_this_week == 3


def test_target_never_negative(knowledge, store, profile, log_session):
    session = log_session('pull', NOW - timedelta(days=1), _back_sets(25))

    [target] = VolumeCalculator(knowledge, store).calculate_volume_targets(['back'], profile, [session], NOW)
    assert target.target_sets_today == 0


def test_high_frequency_splits_weekly_volume(knowledge, store):
    frequent = UserProfile(id='user-1', goal=Goal.BULK, experience=ExperienceLevel.INTERMEDIATE, workout_frequency=6)

    [target] = VolumeCalculator(knowledge, store).calculate_volume_targets(['chest'], frequent, [], NOW)
    assert target.weekly_target == 15
    assert target.target_sets_today == 15 // 2 + 2


def test_default_target_without_landmarks(knowledge, store, profile):
    [target] = VolumeCalculator(knowledge, store).calculate_volume_targets(['forearms'], profile, [], NOW)
    assert target.weekly_target == 16
    assert target.target_sets_today == 16
    assert target.reasoning.endswith("(default target, no research landmarks)")


def test_targets_keep_input_order(knowledge, store, profile):
    targets = VolumeCalculator(knowledge, store).calculate_volume_targets(
        ['triceps', 'chest', 'shoulders'], profile, [], NOW
    )
    assert [t.muscle_group for t in targets] == ['triceps', 'chest', 'shoulders']


def test_exercise_count_from_research(knowledge, store, profile):
    rec = VolumeCalculator(knowledge, store).recommend_exercise_count('chest', profile)
    assert rec.count == 3
    assert rec.source == 'research'
    assert 'contentReference' not in rec.reason


def test_exercise_count_heuristic(knowledge, store, profile):
    calc = VolumeCalculator(knowledge, store)
    assert calc.recommend_exercise_count('calves', profile).count == 4
    assert calc.recommend_exercise_count('calves', profile).source == 'heuristic'

    beginner = UserProfile(id='b', goal=Goal.CUT, experience=ExperienceLevel.BEGINNER, workout_frequency=6)
    assert calc.recommend_exercise_count('calves', beginner).count == 1


def test_exercise_count_heuristic_for_bulking_beginner(knowledge, store):
    beginner = UserProfile(id='b', goal=Goal.BULK, experience=ExperienceLevel.BEGINNER, workout_frequency=3)
    rec = VolumeCalculator(knowledge, store).recommend_exercise_count('calves', beginner)

    assert rec.count == 3
    assert rec.source == 'heuristic'


def test_volume_progress(knowledge, store, profile):
    calc = VolumeCalculator(knowledge, store)

    progress = calc.volume_progress('chest', profile, 5)
    assert (progress.min_sets, progress.max_sets) == (12, 18)
    assert progress.status == "7 more sets to reach the minimum (training 1x/week, 12-18 total sets)"

    assert calc.volume_progress('chest', profile, 12).status.startswith("In the productive range")
    assert calc.volume_progress('chest', profile, 18).status.startswith("Max productive volume reached")


def test_volume_progress_fallback_range(knowledge, store, profile):
    progress = VolumeCalculator(knowledge, store).volume_progress('calves', profile, 0)
    assert (progress.min_sets, progress.max_sets) == (10, 20)


def test_deload_detected_from_notes(knowledge, store, log_session):
    sessions = [
        log_session('push', NOW - timedelta(days=4)),
        log_session('push', NOW - timedelta(days=1), notes='Deload week, light weights'),
    ]
    calc = VolumeCalculator(knowledge, store)
    assert calc.detect_deload('chest', sessions)
    assert not calc.detect_deload('back', sessions)


def test_only_latest_session_decides_deload(knowledge, store, log_session):
    sessions = [
        log_session('push', NOW - timedelta(days=4), notes='deload'),
        log_session('push', NOW - timedelta(days=1)),
    ]
    assert not VolumeCalculator(knowledge, store).detect_deload('chest', sessions)


def test_recovery_status(knowledge, store, log_session):
    sessions = [log_session('pull', NOW - timedelta(days=2))]
    status = VolumeCalculator(knowledge, store).recovery_status(['back', 'quads'], sessions, NOW)
    assert status == {'back': 2, 'quads': 7}


def test_weekly_volume_by_muscle(knowledge, store, profile, log_session):
    sessions = [
        log_session('push', NOW - timedelta(days=2), [('ex-bench', 8, 185)] * 4 + [('ex-lateral', 12, 20)] * 2),
        log_session('pull', NOW - timedelta(days=1), _back_sets(6)),
    ]
    data = VolumeCalculator(knowledge, store).weekly_volume_by_muscle(profile, sessions, NOW)

    assert [(d.muscle_group, d.sets) for d in data] == [('back', 6), ('chest', 4), ('shoulders', 2)]
    assert (data[1].target_min, data[1].target_max) == (12, 18)


def test_failed_session_read_counts_as_empty(store, log_session):
    good = log_session('pull', NOW - timedelta(days=1), _back_sets(2))
    bad = log_session('pull', NOW - timedelta(days=2), _back_sets(3))

    original = store.get_exercise_sets_for_session

    def flaky(session_id):
        if session_id == bad.id:
            raise RuntimeError("read timeout")
        return original(session_id)

    store.get_exercise_sets_for_session = flaky
    result = load_sets_by_session(store, [bad, good])

    assert list(result) == [bad.id, good.id]
    assert result[bad.id] == []
    assert len(result[good.id]) == 2
