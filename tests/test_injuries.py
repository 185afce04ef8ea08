from repforge.coaching import InjuryRuleEngine
from repforge.models import SafetyStatus


def test_parse_free_text():
    engine = InjuryRuleEngine()
    assert engine.parse_injuries("Bad left shoulder and some knee pain") == ['shoulder', 'knee']
    assert engine.parse_injuries(["herniated disc", "golfer's elbow"]) == ['lower_back', 'elbow']
    assert engine.parse_injuries("carpal tunnel, rotator cuff") == ['shoulder', 'wrist']


def test_parse_empty_input():
    engine = InjuryRuleEngine()
    assert engine.parse_injuries(None) == []
    assert engine.parse_injuries("") == []
    assert engine.parse_injuries([]) == []
    assert engine.parse_injuries("nothing relevant") == []


def test_avoid_match():
    engine = InjuryRuleEngine()
    status, note = engine.classify_exercise("Leg Press", ['knee'])
    assert status == SafetyStatus.AVOID
    assert note == "Not recommended with knee issues"

    status, note = engine.classify_exercise("Barbell Row (Bent-Over)", ['lower_back'])
    assert status == SafetyStatus.AVOID
    assert note == "Not recommended with lower back issues"


def test_caution_match():
    engine = InjuryRuleEngine()
    status, note = engine.classify_exercise("Leg Press", ['lower_back'])
    assert status == SafetyStatus.CAUTION
    assert note.startswith("Use with caution: Limit spinal loading")


def test_avoid_beats_earlier_caution():
    engine = InjuryRuleEngine()
    status, _ = engine.classify_exercise("Barbell Bench Press (Flat)", ['shoulder', 'wrist'])
    assert status == SafetyStatus.AVOID


def test_first_caution_note_is_kept():
    engine = InjuryRuleEngine()
    status, note = engine.classify_exercise("Dumbbell Curl", ['elbow', 'wrist'])
    assert status == SafetyStatus.CAUTION
    assert note == "Use with caution: Use lighter weights, avoid full lockout and prefer cables and machines"


def test_no_injuries_is_safe():
    assert InjuryRuleEngine().classify_exercise("Barbell Back Squat", []) == (SafetyStatus.SAFE, None)


def test_filter_drops_avoid_and_keeps_order(knowledge):
    engine = InjuryRuleEngine()
    chest = knowledge.get_exercises('chest')
    filtered = engine.filter_exercises(chest, ['shoulder'])

    assert [f.exercise.name for f in filtered] == [
        'Barbell Bench Press (Flat)',
        'Incline Dumbbell Press',
        'Cable Fly',
        'Pec Deck (Machine Fly)',
        'Incline Dumbbell Fly',
    ]
    assert filtered[0].status == SafetyStatus.CAUTION
    assert filtered[2].status == SafetyStatus.SAFE


def test_assess_keeps_avoid_entries(knowledge):
    assessed = InjuryRuleEngine().assess_exercises(knowledge.get_exercises('chest'), ['shoulder'])
    assert len(assessed) == 6
    assert [a.status for a in assessed if a.exercise.name == 'Weighted Dips'] == [SafetyStatus.AVOID]


def test_safe_substitutes_are_deduplicated():
    subs = InjuryRuleEngine().get_safe_substitutes('shoulders', ['shoulder', 'wrist'])
    assert subs == [
        'Landmine Press',
        'Neutral-Grip Dumbbell Press',
        'Cable Lateral Raises',
        'Machine Shoulder Press',
        'Machine Chest Press',
        'Goblet Squat',
        'Safety Bar Squat',
    ]


def test_modification_notes():
    notes = InjuryRuleEngine().get_modification_notes(['knee', 'unknown'])
    assert notes == ['Limit knee flexion under load, prefer hip-dominant movements and control range of motion']
