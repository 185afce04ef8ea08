"""
Training knowledge base.

Internal Codename: ALMANAC
Read-only research data: per-exercise attributes and per-muscle-group volume
landmarks.

The knowledge base is constructed once (usually via from_package()) and passed
to every component that needs it. Nothing in it changes after load, so it can
be shared across threads without locking.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from ..errors import KnowledgeDataError
from ..models import (
    Effectiveness,
    ExerciseDetail,
    ExerciseSubstitution,
    ExperienceLevel,
    Goal,
    GymType,
    OrderingPrinciples,
    VolumeLandmarks,
)
from ..normalizer import (
    normalize_exercise_name_for_matching,
    normalize_muscle_group,
    sanitize_research_text,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / 'data'
EXERCISE_SELECTION_FILE = 'exercise_selection.yaml'
VOLUME_GUIDELINES_FILE = 'volume_guidelines.yaml'

EXERCISE_KINDS = ('all', 'compound', 'accessory')

# Equipment keywords usable per gym type (commercial allows everything)
HOME_EQUIPMENT = ['barbell', 'dumbbell', 'bench', 'bodyweight', 'band', 'kettlebell']
MINIMAL_EQUIPMENT = ['bodyweight', 'band', 'dumbbell']
MINIMAL_EXCLUDED = ['machine', 'cable']

# Days of rest a muscle group needs before it is trained hard again
DEFAULT_REST_DAYS = 2
REST_DAYS_BY_GROUP = {
    'calves': 1,
}


def goal_weighted_score(detail: ExerciseDetail, goal: Goal) -> int:
    """
    Score an exercise for a training goal.

    Bulk ranks by hypertrophy, cut favors hypertrophy with some power,
    maintain averages strength and hypertrophy.
    """
    eff = detail.effectiveness
    if goal == Goal.BULK:
        return eff.hypertrophy_score
    if goal == Goal.CUT:
        return (eff.hypertrophy_score * 2 + eff.power_score) // 3
    return (eff.strength_score + eff.hypertrophy_score) // 2


def _text(entry: Dict, key: str) -> str:
    return sanitize_research_text(str(entry.get(key) or ''))


def _parse_exercise(entry: Dict, muscle_group: str, is_compound: bool) -> ExerciseDetail:
    if not isinstance(entry, dict) or not entry.get('name'):
        raise KnowledgeDataError(f"Exercise entry without a name under '{muscle_group}'")

    eff = entry.get('effectiveness') or {}
    return ExerciseDetail(
        name=_text(entry, 'name'),
        muscle_group=muscle_group,
        equipment=_text(entry, 'equipment'),
        is_compound=is_compound,
        effectiveness=Effectiveness(
            hypertrophy=_text(eff, 'hypertrophy'),
            strength=_text(eff, 'strength'),
            power=_text(eff, 'power'),
        ),
        emg_activation=_text(entry, 'EMG_activation'),
        injury_risk=_text(entry, 'injury_risk'),
        prerequisites=_text(entry, 'prerequisites'),
        progression_path=_text(entry, 'progression_path'),
        when_to_prioritize=_text(entry, 'when_to_prioritize') or None,
    )


def _parse_landmarks(entry: Dict) -> VolumeLandmarks:
    return VolumeLandmarks(
        mv=_text(entry, 'MV'),
        mev=_text(entry, 'MEV'),
        mav=_text(entry, 'MAV'),
        mrv=_text(entry, 'MRV'),
        sets_per_session_range=_text(entry, 'sets_per_session_range'),
        exercises_per_session=_text(entry, 'exercises_per_session'),
        frequency_recommendation=_text(entry, 'frequency_recommendation'),
        rest_between_sets=_text(entry, 'rest_between_sets'),
        rep_range=_text(entry, 'rep_range'),
        intensity_guidance=_text(entry, 'intensity_guidance'),
        progression_rate=_text(entry, 'progression_rate'),
        recovery_notes=_text(entry, 'recovery_notes'),
        notes=_text(entry, 'notes'),
        sources=tuple(sanitize_research_text(str(s)) for s in entry.get('sources') or []),
    )


class KnowledgeBase:
    """
    Lookup service over exercise research and volume landmarks.

    Absent data is never an error: lookups return None or an empty list and
    callers apply their own numeric fallbacks.
    """

    def __init__(self, exercise_data: Optional[Dict] = None, volume_data: Optional[Dict] = None):
        """
        Build the knowledge base from raw research mappings.

        Args:
            exercise_data: Parsed exercise_selection.yaml content
            volume_data: Parsed volume_guidelines.yaml content

        Raises:
            KnowledgeDataError: If the research data is structurally malformed
        """
        self._exercises: Dict[str, List[ExerciseDetail]] = {}
        self._substitutions: Dict[str, List[ExerciseSubstitution]] = {}
        self._ordering: Optional[OrderingPrinciples] = None
        self._landmarks: Dict[Tuple[str, str, str], VolumeLandmarks] = {}

        self._load_exercises(exercise_data or {})
        self._load_landmarks(volume_data or {})

        logger.info(
            f"Knowledge base loaded: {sum(len(v) for v in self._exercises.values())} exercises "
            f"across {len(self._exercises)} muscle groups, {len(self._landmarks)} volume landmarks"
        )

    @classmethod
    def from_dicts(cls, exercise_data: Optional[Dict] = None, volume_data: Optional[Dict] = None) -> 'KnowledgeBase':
        return cls(exercise_data, volume_data)

    @classmethod
    def from_files(cls, exercise_path: Path, volume_path: Path) -> 'KnowledgeBase':
        """Load research data from two YAML files."""
        exercise_data = cls._read_yaml(Path(exercise_path))
        volume_data = cls._read_yaml(Path(volume_path))
        return cls(exercise_data, volume_data)

    @classmethod
    def from_package(cls) -> 'KnowledgeBase':
        """Load the research data bundled with the package."""
        return cls.from_files(
            DATA_DIR / EXERCISE_SELECTION_FILE,
            DATA_DIR / VOLUME_GUIDELINES_FILE,
        )

    @staticmethod
    def _read_yaml(path: Path) -> Dict:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise KnowledgeDataError(f"Could not parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise KnowledgeDataError(f"{path} must contain a mapping at the top level")
        return data

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_exercises(self, data: Dict):
        for raw_group, section in data.items():
            if raw_group == 'exercise_ordering_research':
                self._ordering = OrderingPrinciples(
                    optimal_sequence=_text(section, 'optimal_sequence'),
                    fatigue_management=_text(section, 'fatigue_management'),
                    compound_vs_isolation_timing=_text(section, 'compound_vs_isolation_timing'),
                )
                continue

            if not isinstance(section, dict):
                raise KnowledgeDataError(f"Muscle group '{raw_group}' must be a mapping")

            group = normalize_muscle_group(raw_group)
            details = self._exercises.setdefault(group, [])
            for entry in section.get('compound') or []:
                details.append(_parse_exercise(entry, group, True))
            for entry in section.get('accessory') or []:
                details.append(_parse_exercise(entry, group, False))

            self._substitutions[group] = [
                ExerciseSubstitution(
                    scenario=_text(s, 'scenario'),
                    substitute=_text(s, 'substitute'),
                    notes=_text(s, 'notes'),
                )
                for s in section.get('substitutions') or []
            ]

    def _load_landmarks(self, data: Dict):
        guidelines = data.get('volume_guidelines') or {}
        for raw_group, goals in guidelines.items():
            group = normalize_muscle_group(raw_group)
            for goal, tiers in (goals or {}).items():
                for tier, entry in (tiers or {}).items():
                    if not isinstance(entry, dict):
                        raise KnowledgeDataError(
                            f"Volume landmarks for {raw_group}/{goal}/{tier} must be a mapping"
                        )
                    key = (group, str(goal).lower(), str(tier).lower())
                    self._landmarks[key] = _parse_landmarks(entry)

    # =========================================================================
    # Queries
    # =========================================================================

    def normalize_muscle_group(self, raw: str) -> str:
        return normalize_muscle_group(raw)

    @property
    def muscle_groups(self) -> List[str]:
        return list(self._exercises.keys())

    def get_volume_landmarks(
        self,
        muscle_group: str,
        goal: Goal,
        experience: ExperienceLevel
    ) -> Optional[VolumeLandmarks]:
        """
        Get volume landmarks for a muscle group, goal and experience tier.

        Returns:
            VolumeLandmarks, or None when the research has no entry
        """
        key = (normalize_muscle_group(muscle_group), goal.value, experience.value)
        return self._landmarks.get(key)

    def get_exercises(self, muscle_group: str, kind: str = 'all') -> List[ExerciseDetail]:
        """
        Get exercises for a muscle group.

        Args:
            muscle_group: Free-text muscle group
            kind: 'all', 'compound' or 'accessory'
        """
        if kind not in EXERCISE_KINDS:
            raise ValueError(f"Unknown exercise kind: {kind}")

        details = self._exercises.get(normalize_muscle_group(muscle_group), [])
        if kind == 'compound':
            return [d for d in details if d.is_compound]
        if kind == 'accessory':
            return [d for d in details if not d.is_compound]
        return list(details)

    def get_exercises_ranked(self, muscle_group: str, goal: Goal) -> List[ExerciseDetail]:
        """Exercises for a group, best goal-weighted effectiveness first (stable for ties)."""
        details = self.get_exercises(muscle_group)
        return sorted(details, key=lambda d: goal_weighted_score(d, goal), reverse=True)

    def find_exercise(self, name: str) -> Optional[ExerciseDetail]:
        """
        Find an exercise by name.

        Matching is case-insensitive and ignores parenthetical qualifiers.
        Exact matches win over substring matches.
        """
        query = normalize_exercise_name_for_matching(name)
        if not query:
            return None

        all_details = [d for details in self._exercises.values() for d in details]
        keyed = [(normalize_exercise_name_for_matching(d.name), d) for d in all_details]

        for candidate, detail in keyed:
            if candidate == query:
                return detail
        for candidate, detail in keyed:
            if query in candidate:
                return detail
        for candidate, detail in keyed:
            if candidate and candidate in query:
                return detail
        return None

    def get_substitutions(self, muscle_group: str) -> List[ExerciseSubstitution]:
        return list(self._substitutions.get(normalize_muscle_group(muscle_group), []))

    def get_ordering_principles(self) -> Optional[OrderingPrinciples]:
        return self._ordering

    def is_equipment_available(self, detail: ExerciseDetail, gym_type: GymType) -> bool:
        """Check whether a gym type has the equipment an exercise needs."""
        equipment = detail.equipment.lower()

        if gym_type == GymType.HOME:
            return any(item in equipment for item in HOME_EQUIPMENT)
        if gym_type == GymType.MINIMAL:
            if any(item in equipment for item in MINIMAL_EXCLUDED):
                return False
            return any(item in equipment for item in MINIMAL_EQUIPMENT)
        return True

    def get_exercises_for_equipment(
        self,
        muscle_group: str,
        gym_type: GymType,
        goal: Optional[Goal] = None
    ) -> List[ExerciseDetail]:
        """Exercises the gym type can support, ranked when a goal is given."""
        if goal is not None:
            details = self.get_exercises_ranked(muscle_group, goal)
        else:
            details = self.get_exercises(muscle_group)
        return [d for d in details if self.is_equipment_available(d, gym_type)]

    def recommended_rest_days(self, muscle_group: str) -> int:
        return REST_DAYS_BY_GROUP.get(normalize_muscle_group(muscle_group), DEFAULT_REST_DAYS)
