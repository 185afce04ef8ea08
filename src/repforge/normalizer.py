"""
Normalization utilities for exercise names, muscle groups and research text.

Internal Codename: SCRUBBER
Clean and normalize messy exercise data.
"""

import re
from typing import Optional


# Citation artifacts left behind in research narratives
CITATION_PATTERNS = [
    r'contentReference\[.*?\]\{.*?\}',  # "contentReference[oaicite:3]{index=3}"
    r'\[image [^\]]*\]',  # "[image 1]"
    r'contentReference\[.*?\]',  # "contentReference[oaicite:3]"
    r'\{index=\d+\}',  # "{index=3}"
]


def sanitize_research_text(text: Optional[str]) -> str:
    """
    Strip citation markers from research text.

    Also collapses repeated whitespace and trims the result.
    """
    if not text:
        return ""

    for pattern in CITATION_PATTERNS:
        text = re.sub(pattern, '', text, flags=re.DOTALL)

    text = re.sub(r' {2,}', ' ', text)

    return text.strip()


def first_sentence(text: Optional[str]) -> str:
    """Return the sanitized text up to its first period."""
    clean = sanitize_research_text(text)
    idx = clean.find('.')
    return clean[:idx] if idx >= 0 else clean


def normalize_exercise_name_for_matching(name: str) -> str:
    """
    Normalize exercise name for fuzzy matching against the catalog.

    Steps:
    - Lowercase
    - Remove parenthetical qualifiers ("(Flat)", "(Machine)")
    - Remove citation markers
    - Collapse whitespace
    """
    name = sanitize_research_text(name)

    # Remove parentheticals
    name = re.sub(r'\([^)]*\)', '', name)

    name = name.lower()

    # Replace multiple spaces with single space
    name = re.sub(r'\s+', ' ', name)

    return name.strip()


def names_match(a: str, b: str) -> bool:
    """Fuzzy name comparison: equal, or one contains the other."""
    left = normalize_exercise_name_for_matching(a)
    right = normalize_exercise_name_for_matching(b)

    if not left or not right:
        return False

    return left == right or left in right or right in left


CANONICAL_MUSCLE_GROUPS = [
    "chest", "back", "shoulders", "quads", "hamstrings",
    "glutes", "biceps", "triceps", "calves", "core",
]

# Exact aliases (after lowercasing and "_" -> " ")
MUSCLE_GROUP_ALIASES = {
    "chest": "chest", "pecs": "chest", "pectorals": "chest", "pecs major": "chest",
    "back": "back", "lats": "back", "traps": "back", "upper back": "back",
    "middle back": "back", "rhomboids": "back",
    "shoulders": "shoulders", "shoulder": "shoulders", "delts": "shoulders",
    "deltoids": "shoulders",
    "quads": "quads", "quad": "quads", "quadriceps": "quads", "legs": "quads",
    "leg": "quads", "thighs": "quads",
    "hamstrings": "hamstrings", "hamstring": "hamstrings", "hams": "hamstrings",
    "glutes": "glutes", "glute": "glutes", "gluteus": "glutes",
    "biceps": "biceps", "bicep": "biceps",
    "triceps": "triceps", "tricep": "triceps",
    "calves": "calves", "calf": "calves",
    "core": "core", "abs": "core", "abdominals": "core", "obliques": "core",
}

# Substring fallbacks, checked in order
MUSCLE_GROUP_KEYWORDS = [
    ("delt", "shoulders"),
    ("shoulder", "shoulders"),
    ("quad", "quads"),
    ("ham", "hamstrings"),
    ("glute", "glutes"),
    ("calf", "calves"),
    ("calves", "calves"),
    ("chest", "chest"),
    ("pec", "chest"),
    ("bicep", "biceps"),
    ("tricep", "triceps"),
    ("lat", "back"),
    ("back", "back"),
    ("leg", "quads"),
    ("abdom", "core"),
]


def normalize_muscle_group(raw: str) -> str:
    """
    Map a free-text muscle group to the canonical taxonomy.

    Unrecognized input is returned lowercased and otherwise unchanged.
    """
    lowered = (raw or "").lower()
    key = lowered.replace('_', ' ').strip()

    if key in MUSCLE_GROUP_ALIASES:
        return MUSCLE_GROUP_ALIASES[key]

    for keyword, group in MUSCLE_GROUP_KEYWORDS:
        if keyword in key:
            return group

    return lowered
