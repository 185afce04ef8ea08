from repforge.normalizer import (
    first_sentence,
    names_match,
    normalize_exercise_name_for_matching,
    normalize_muscle_group,
    sanitize_research_text,
)


def test_sanitize_strips_citation_markers():
    text = "RPE 7-8, leave reps in reserve contentReference[oaicite:2]{index=2} [image 1]"
    assert sanitize_research_text(text) == "RPE 7-8, leave reps in reserve"


def test_sanitize_collapses_spaces_and_handles_empty():
    assert sanitize_research_text("Great  lift   today ") == "Great lift today"
    assert sanitize_research_text(None) == ""
    assert sanitize_research_text("") == ""


def test_first_sentence():
    assert first_sentence("Compounds first. Then accessories.") == "Compounds first"
    assert first_sentence("No period here") == "No period here"


def test_exercise_name_normalization_drops_parentheticals():
    assert normalize_exercise_name_for_matching("Barbell Bench Press (Flat)") == "barbell bench press"
    assert normalize_exercise_name_for_matching("  Pec   Deck (Machine Fly) ") == "pec deck"


def test_names_match_by_containment():
    assert names_match("Pec Deck", "Pec Deck (Machine Fly)")
    assert names_match("Barbell Row", "Barbell Row (Bent-Over)")
    assert not names_match("Cable Fly", "Incline Dumbbell Fly")
    assert not names_match("", "Cable Fly")


def test_muscle_group_aliases():
    assert normalize_muscle_group("Lats") == "back"
    assert normalize_muscle_group("quadriceps") == "quads"
    assert normalize_muscle_group("ABS") == "core"
    assert normalize_muscle_group("upper_back") == "back"


def test_muscle_group_keyword_fallback():
    assert normalize_muscle_group("Rear Delts") == "shoulders"
    assert normalize_muscle_group("Inner Thigh Quad") == "quads"


def test_unknown_muscle_group_is_lowercased():
    assert normalize_muscle_group("Forearms") == "forearms"
    assert normalize_muscle_group("") == ""
