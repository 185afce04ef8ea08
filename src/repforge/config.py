"""
Engine configuration.

Tunable parameters for plan generation, volume tracking and in-session
adaptation. Defaults reproduce the literal coaching heuristics; overrides come
from config/engine.yaml.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / 'config' / 'engine.yaml'


def load_config_yaml(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML file, return empty dict if not found."""
    if path is None:
        env_path = os.getenv('REPFORGE_CONFIG')
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    path = Path(path)
    if path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}

    logger.debug(f"No engine config at {path}, using defaults")
    return {}


@dataclass
class EngineConfig:
    """Configuration for plan generation and session adaptation.

    Loads from config/engine.yaml if available, else uses defaults.
    """

    # Compound allocation
    compound_sets: Tuple[int, ...] = (4, 3)  # Primary, secondary
    compound_rest_seconds: int = 180

    # Isolation allocation
    max_isolations: int = 2
    min_isolation_sets: int = 2
    isolation_rest_seconds: int = 90

    # Volume targets
    default_weekly_sets: int = 16  # No landmarks for the group
    default_sets_today: int = 12  # Group missing from the volume targets
    high_frequency_days: int = 5  # Training this often splits weekly volume over 2 sessions
    fallback_weekly_range: Tuple[int, int] = (10, 20)
    history_workers: int = 4

    # Duration estimate (minutes)
    warmup_minutes: int = 5
    cooldown_minutes: int = 5
    minutes_per_set: int = 2

    # In-session adaptation
    machine_increment: int = 10
    default_increment: int = 5
    substitute_recent_sessions: int = 3
    substitute_recent_days: int = 14

    # Summary
    volume_pr_lookback_days: int = 30

    # Smart recommendation
    recommendation_lookback_days: int = 7
    deload_volume_factor: float = 0.7

    @property
    def max_compounds(self) -> int:
        return len(self.compound_sets)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'EngineConfig':
        """Load config from YAML file."""
        yaml_config = load_config_yaml(path)

        kwargs = {}

        if 'compounds' in yaml_config:
            c = yaml_config['compounds']
            kwargs['compound_sets'] = tuple(c.get('sets', [4, 3]))
            kwargs['compound_rest_seconds'] = c.get('rest_seconds', 180)

        if 'isolations' in yaml_config:
            i = yaml_config['isolations']
            kwargs['max_isolations'] = i.get('max_count', 2)
            kwargs['min_isolation_sets'] = i.get('min_sets', 2)
            kwargs['isolation_rest_seconds'] = i.get('rest_seconds', 90)

        if 'volume' in yaml_config:
            v = yaml_config['volume']
            kwargs['default_weekly_sets'] = v.get('default_weekly_sets', 16)
            kwargs['default_sets_today'] = v.get('default_sets_today', 12)
            kwargs['high_frequency_days'] = v.get('high_frequency_days', 5)
            kwargs['fallback_weekly_range'] = tuple(v.get('fallback_weekly_range', [10, 20]))
            kwargs['history_workers'] = v.get('history_workers', 4)

        if 'duration' in yaml_config:
            d = yaml_config['duration']
            kwargs['warmup_minutes'] = d.get('warmup_minutes', 5)
            kwargs['cooldown_minutes'] = d.get('cooldown_minutes', 5)
            kwargs['minutes_per_set'] = d.get('minutes_per_set', 2)

        if 'adaptation' in yaml_config:
            a = yaml_config['adaptation']
            kwargs['machine_increment'] = a.get('machine_increment', 10)
            kwargs['default_increment'] = a.get('default_increment', 5)
            kwargs['substitute_recent_sessions'] = a.get('substitute_recent_sessions', 3)
            kwargs['substitute_recent_days'] = a.get('substitute_recent_days', 14)

        if 'summary' in yaml_config:
            kwargs['volume_pr_lookback_days'] = yaml_config['summary'].get('volume_pr_lookback_days', 30)

        if 'recommendation' in yaml_config:
            r = yaml_config['recommendation']
            kwargs['recommendation_lookback_days'] = r.get('lookback_days', 7)
            kwargs['deload_volume_factor'] = r.get('deload_volume_factor', 0.7)

        return cls(**kwargs)
