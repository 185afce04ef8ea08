from repforge.models import (
    Effectiveness,
    ExerciseDetail,
    MuscleVolumeData,
    SafetyLevel,
    parse_effectiveness_score,
    parse_int_range,
)


def test_effectiveness_scores():
    assert parse_effectiveness_score("Very High - heavy loading") == 4
    assert parse_effectiveness_score("High") == 3
    assert parse_effectiveness_score("Medium") == 2
    assert parse_effectiveness_score("Low") == 1
    assert parse_effectiveness_score("") == 1


def test_parse_int_range():
    assert parse_int_range("12-18 sets/week") == (12, 18)
    assert parse_int_range("18-12 sets") == (12, 18)
    assert parse_int_range("about 10 sets") is None
    assert parse_int_range("") is None


def test_safety_level_from_injury_risk():
    def detail(risk):
        return ExerciseDetail(
            name="X", muscle_group="chest", equipment="Cable", is_compound=False,
            effectiveness=Effectiveness("High", "Low", "Low"), injury_risk=risk,
        )

    assert detail("Low").safety_level == SafetyLevel.LOW
    assert detail("Very low").safety_level == SafetyLevel.LOW
    assert detail("Low/Medium, shoulder strain").safety_level == SafetyLevel.MEDIUM
    assert detail("High with poor form").safety_level == SafetyLevel.HIGH


def test_volume_percentage_is_capped():
    assert MuscleVolumeData("chest", 30, 12, 18).percentage == 1.0
    assert MuscleVolumeData("chest", 0, 0, 0).percentage == 0.0
    assert abs(MuscleVolumeData("chest", 6, 10, 14).percentage - 0.5) < 1e-9
