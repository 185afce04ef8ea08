"""
Training data store.

Internal Codename: LOGBOOK
In-memory catalog, profile, history and persistence collaborator.

The coaching engine only talks to the store through the methods below, so a
database-backed implementation can stand in for it. The in-memory version is
loaded from a YAML fixture for the CLI and tests.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from .models import (
    CatalogExercise,
    ExercisePreference,
    ExerciseSet,
    ExperienceLevel,
    Goal,
    GymType,
    PreferenceLevel,
    SessionPlan,
    UserProfile,
    WorkoutSession,
    new_id,
)
from .normalizer import normalize_muscle_group

logger = logging.getLogger(__name__)


def _as_datetime(value: Any) -> Optional[datetime]:
    """Accept YAML timestamps (already datetime) or ISO strings."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def profile_from_dict(data: Dict) -> UserProfile:
    """Build a UserProfile from a YAML mapping."""
    injuries = data.get('injuries') or []
    if isinstance(injuries, str):
        injuries = [injuries]

    return UserProfile(
        id=str(data.get('id', 'local-user')),
        goal=Goal(str(data.get('goal', 'maintain')).lower()),
        experience=ExperienceLevel(str(data.get('experience', 'beginner')).lower()),
        workout_frequency=int(data.get('workout_frequency', 3)),
        gym_type=GymType(str(data.get('gym_type', 'commercial')).lower()),
        injuries=list(injuries),
        full_name=data.get('full_name'),
    )


class TrainingStore:
    """
    Reference implementation of the catalog/history/persistence collaborator.

    All reads return copies or immutable records; writes are serialized
    under a single lock.
    """

    def __init__(
        self,
        catalog: Optional[Iterable[CatalogExercise]] = None,
        profiles: Optional[Iterable[UserProfile]] = None
    ):
        self._lock = threading.Lock()
        self._catalog: Dict[str, CatalogExercise] = {}
        self._profiles: Dict[str, UserProfile] = {}
        self._sessions: Dict[str, WorkoutSession] = {}
        self._sets: Dict[str, ExerciseSet] = {}
        self._preferences: Dict[str, Dict[str, ExercisePreference]] = {}
        self._plans: Dict[str, SessionPlan] = {}

        for exercise in catalog or []:
            self._catalog[exercise.id] = exercise
        for profile in profiles or []:
            self._profiles[profile.id] = profile

    @classmethod
    def from_yaml(cls, path: Path) -> 'TrainingStore':
        """
        Load a store from a YAML fixture.

        Expected top-level keys: catalog, profiles, sessions, sets,
        preferences. All are optional.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        store = cls(
            catalog=[
                CatalogExercise(
                    id=str(e['id']),
                    name=e['name'],
                    muscle_group=e['muscle_group'],
                    workout_type=e.get('workout_type', ''),
                    equipment=tuple(e.get('equipment') or ()),
                    is_compound=bool(e.get('is_compound', False)),
                    difficulty=ExperienceLevel(e.get('difficulty', 'beginner')),
                    description=e.get('description', ''),
                )
                for e in data.get('catalog') or []
            ],
            profiles=[profile_from_dict(p) for p in data.get('profiles') or []],
        )

        for s in data.get('sessions') or []:
            store.add_session(WorkoutSession(
                id=str(s['id']),
                user_id=str(s['user_id']),
                workout_type=s['workout_type'],
                started_at=_as_datetime(s['started_at']),
                completed_at=_as_datetime(s.get('completed_at')),
                notes=s.get('notes'),
            ))

        for s in data.get('sets') or []:
            store.save_exercise_set(ExerciseSet(
                id=str(s.get('id') or new_id()),
                session_id=str(s['session_id']),
                exercise_id=str(s['exercise_id']),
                set_number=int(s['set_number']),
                reps=int(s['reps']),
                weight=float(s['weight']),
                completed_at=_as_datetime(s['completed_at']),
                rpe=s.get('rpe'),
                rest_seconds=s.get('rest_seconds'),
            ))

        for user_id, prefs in (data.get('preferences') or {}).items():
            for p in prefs:
                store.set_exercise_preference(str(user_id), ExercisePreference(
                    exercise_id=str(p['exercise_id']),
                    preference_level=PreferenceLevel(p.get('level', 'neutral')),
                    reason=p.get('reason'),
                ))

        logger.info(
            f"Loaded store from {path}: {len(store._catalog)} catalog exercises, "
            f"{len(store._sessions)} sessions, {len(store._sets)} sets"
        )
        return store

    # =========================================================================
    # Catalog
    # =========================================================================

    def add_catalog_exercise(self, exercise: CatalogExercise):
        with self._lock:
            self._catalog[exercise.id] = exercise

    def get_exercises_by_muscle_group(self, workout_type: Optional[str], muscle_group: str) -> List[CatalogExercise]:
        """
        Catalog exercises for a muscle group.

        Matching is case-insensitive; the workout type is a substring filter
        and is skipped when empty.
        """
        group = normalize_muscle_group(muscle_group)
        wanted_type = (workout_type or '').lower()

        results = []
        for exercise in self._catalog.values():
            if normalize_muscle_group(exercise.muscle_group) != group:
                continue
            if wanted_type and wanted_type not in exercise.workout_type.lower():
                continue
            results.append(exercise)
        return results

    def get_exercise_by_id(self, exercise_id: str) -> Optional[CatalogExercise]:
        return self._catalog.get(exercise_id)

    def get_exercises_by_ids(self, exercise_ids: Iterable[str]) -> List[CatalogExercise]:
        return [self._catalog[i] for i in dict.fromkeys(exercise_ids) if i in self._catalog]

    # =========================================================================
    # Profiles and preferences
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    def set_exercise_preference(self, user_id: str, preference: ExercisePreference):
        with self._lock:
            self._preferences.setdefault(user_id, {})[preference.exercise_id] = preference

    def get_exercise_preferences(self, user_id: str) -> List[ExercisePreference]:
        return list(self._preferences.get(user_id, {}).values())

    # =========================================================================
    # History
    # =========================================================================

    def add_session(self, session: WorkoutSession):
        with self._lock:
            self._sessions[session.id] = session

    def start_workout_session(self, user_id: str, workout_type: str, started_at: Optional[datetime] = None) -> WorkoutSession:
        session = WorkoutSession(
            id=new_id(),
            user_id=user_id,
            workout_type=workout_type,
            started_at=started_at or datetime.now(),
        )
        self.add_session(session)
        return session

    def get_session(self, session_id: str) -> Optional[WorkoutSession]:
        return self._sessions.get(session_id)

    def get_recent_sessions(self, user_id: str, limit: int = 10) -> List[WorkoutSession]:
        """Most recent sessions first."""
        sessions = [s for s in self._sessions.values() if s.user_id == user_id]
        sessions.sort(key=lambda s: s.started_at, reverse=True)
        return sessions[:limit]

    def get_sessions_between(self, user_id: str, start: datetime, end: datetime) -> List[WorkoutSession]:
        """Sessions started within [start, end], most recent first."""
        sessions = [
            s for s in self._sessions.values()
            if s.user_id == user_id and start <= s.started_at <= end
        ]
        sessions.sort(key=lambda s: s.started_at, reverse=True)
        return sessions

    def get_exercise_sets_for_session(self, session_id: str) -> List[ExerciseSet]:
        sets = [s for s in self._sets.values() if s.session_id == session_id]
        sets.sort(key=lambda s: (s.completed_at, s.set_number))
        return sets

    def get_exercise_history(self, user_id: str, exercise_id: str, limit: int = 100) -> List[ExerciseSet]:
        """Logged sets for an exercise across the user's sessions, newest first."""
        user_sessions = {s.id for s in self._sessions.values() if s.user_id == user_id}
        sets = [
            s for s in self._sets.values()
            if s.exercise_id == exercise_id and s.session_id in user_sessions
        ]
        sets.sort(key=lambda s: s.completed_at, reverse=True)
        return sets[:limit]

    def get_session_plan(self, session_id: str) -> Optional[SessionPlan]:
        return self._plans.get(session_id)

    # =========================================================================
    # Persistence
    # =========================================================================

    def save_exercise_set(self, exercise_set: ExerciseSet) -> ExerciseSet:
        with self._lock:
            self._sets[exercise_set.id] = exercise_set
        return exercise_set

    def update_exercise_set(self, exercise_set: ExerciseSet) -> ExerciseSet:
        with self._lock:
            if exercise_set.id not in self._sets:
                raise KeyError(f"Unknown exercise set {exercise_set.id}")
            self._sets[exercise_set.id] = exercise_set
        return exercise_set

    def delete_exercise_set(self, set_id: str):
        with self._lock:
            self._sets.pop(set_id, None)

    def complete_workout_session(self, session_id: str, notes: Optional[str] = None,
                                 completed_at: Optional[datetime] = None) -> WorkoutSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Unknown workout session {session_id}")
            session = replace(session, completed_at=completed_at or datetime.now(), notes=notes)
            self._sessions[session_id] = session
        return session

    def save_session_plan(self, plan: SessionPlan):
        with self._lock:
            self._plans[plan.session_id] = plan
