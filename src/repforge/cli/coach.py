#!/usr/bin/env python3
"""
repforge CLI - HEADCOACH

Internal Codename: HEADCOACH
Command-line coaching interface for repforge.

Usage:
    repforge plan --user USER [--type TYPE] [--muscle GROUP ...]
    repforge volume --user USER
    repforge next --user USER
    repforge alt --user USER --exercise EXERCISE
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import click
from dotenv import load_dotenv

from repforge.config import EngineConfig
from repforge.knowledge import KnowledgeBase
from repforge.models import PlannedExercise, new_id
from repforge.store import TrainingStore
from repforge.coaching import (
    AdaptationEngine,
    SessionPlanGenerator,
    SmartRecommender,
    VolumeCalculator,
    build_order_note,
    format_plan_text,
)
from repforge.coaching.recommender import determine_workout_type

load_dotenv()

RECENT_SESSION_LIMIT = 20


def _load(store_path: Optional[str], config_path: Optional[str]):
    config = EngineConfig.from_yaml(Path(config_path) if config_path else None)
    knowledge = KnowledgeBase.from_package()
    store = TrainingStore.from_yaml(Path(store_path)) if store_path else TrainingStore()
    return config, knowledge, store


store_option = click.option(
    '--store', 'store_path', envvar='REPFORGE_STORE', type=click.Path(exists=True, dir_okay=False),
    help='Training store YAML fixture (env: REPFORGE_STORE)'
)
config_option = click.option(
    '--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
    help='Engine config YAML (default: REPFORGE_CONFIG or config/engine.yaml)'
)
user_option = click.option('--user', 'user_id', required=True, help='Profile id in the store')


@click.group()
@click.option('--verbose', is_flag=True, help='Log engine decisions')
def cli(verbose: bool):
    """
    repforge - Session planning and volume tracking

    FORGE: Your session, hammered out.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


@cli.command()
@user_option
@click.option('--type', 'workout_type', default='push', help='Workout type (push/pull/legs/upper/lower/full)')
@click.option('--muscle', 'muscles', multiple=True, help='Muscle group to train (repeatable, default: by type)')
@store_option
@config_option
def plan(user_id: str, workout_type: str, muscles: Tuple[str, ...],
         store_path: Optional[str], config_path: Optional[str]):
    """Generate a session plan."""
    config, knowledge, store = _load(store_path, config_path)

    profile = store.get_profile(user_id)
    if profile is None:
        click.echo(f"❌ No profile found for '{user_id}'")
        return

    generator = SessionPlanGenerator(knowledge, store, config)
    session_plan = generator.generate_plan(
        workout_type=workout_type,
        muscle_groups=list(muscles),
        profile=profile,
        recent_sessions=store.get_recent_sessions(user_id, limit=RECENT_SESSION_LIMIT),
        session_id=new_id(),
        user_id=user_id,
    )

    click.echo(format_plan_text(session_plan))
    click.echo(build_order_note(knowledge, list(session_plan.muscle_groups)))


@cli.command()
@user_option
@store_option
@config_option
def volume(user_id: str, store_path: Optional[str], config_path: Optional[str]):
    """Show this week's sets per muscle group."""
    config, knowledge, store = _load(store_path, config_path)

    profile = store.get_profile(user_id)
    if profile is None:
        click.echo(f"❌ No profile found for '{user_id}'")
        return

    calculator = VolumeCalculator(knowledge, store, config)
    sessions = store.get_recent_sessions(user_id, limit=RECENT_SESSION_LIMIT)
    weekly = calculator.weekly_volume_by_muscle(profile, sessions)

    click.echo("=" * 60)
    click.echo("WEEKLY VOLUME BY MUSCLE GROUP (Last 7 days)")
    click.echo("=" * 60)

    if not weekly:
        click.echo("\n❌ No volume data available")
        return

    click.echo(f"\nMuscle Group         | Sets | Target")
    click.echo("─" * 60)
    for data in weekly:
        bar = "█" * int(data.percentage * 20)
        click.echo(f"{data.muscle_group:20} | {data.sets:4} | {data.target_min}-{data.target_max} {bar}")

    click.echo(f"\n{'─' * 60}")
    click.echo("RECOVERY (days since trained)")
    click.echo('─' * 60)
    for group, days in calculator.recovery_status([d.muscle_group for d in weekly], sessions).items():
        rest_days = knowledge.recommended_rest_days(group)
        state = "recovered" if days >= rest_days else "recovering"
        click.echo(f"{group:20} | {days:4} | {state}")

    click.echo("\n" + "=" * 60)


@cli.command(name='next')
@user_option
@store_option
@config_option
def next_workout(user_id: str, store_path: Optional[str], config_path: Optional[str]):
    """Recommend what to train next."""
    config, knowledge, store = _load(store_path, config_path)

    profile = store.get_profile(user_id)
    if profile is None:
        click.echo(f"❌ No profile found for '{user_id}'")
        return

    recommendation = SmartRecommender(knowledge, store, config).get_smart_recommendation(profile)

    click.echo("=" * 60)
    click.echo(f"NEXT WORKOUT: {recommendation.workout_type.title()}")
    click.echo("=" * 60)
    click.echo(f"\nMuscle groups: {', '.join(recommendation.muscle_groups)}")
    click.echo(f"Why: {recommendation.reasoning}")

    if recommendation.suggested_exercises:
        click.echo(f"\n{'─' * 60}")
        click.echo("SUGGESTED EXERCISES")
        click.echo('─' * 60)
        for name, sets in recommendation.suggested_exercises:
            click.echo(f"  {name}: {sets} sets")

    click.echo("\n" + "=" * 60)


@cli.command()
@user_option
@click.option('--exercise', required=True, help='Exercise to replace')
@store_option
@config_option
def alt(user_id: str, exercise: str, store_path: Optional[str], config_path: Optional[str]):
    """Suggest a substitute exercise."""
    config, knowledge, store = _load(store_path, config_path)

    profile = store.get_profile(user_id)
    if profile is None:
        click.echo(f"❌ No profile found for '{user_id}'")
        return

    detail = knowledge.find_exercise(exercise)
    if detail is None:
        click.echo(f"❌ Unknown exercise '{exercise}'")
        return

    planned = PlannedExercise(
        id=new_id(),
        exercise_name=detail.name,
        muscle_group=detail.muscle_group,
        order_index=0,
        is_compound=detail.is_compound,
        target_sets=3,
        target_reps_min=8,
        target_reps_max=12,
        rest_seconds=config.compound_rest_seconds if detail.is_compound else config.isolation_rest_seconds,
        rationale="",
    )
    workout_type = determine_workout_type(detail.muscle_group)[0]
    substitute = AdaptationEngine(knowledge, store, config).get_smart_substitute(
        planned, None, profile, workout_type=workout_type
    )

    if substitute is None:
        click.echo(f"❌ No substitute found for '{detail.name}'")
        return

    click.echo("=" * 60)
    click.echo(f"SUBSTITUTE FOR: {detail.name}")
    click.echo("=" * 60)
    click.echo(f"\n{substitute.exercise.name}")
    click.echo(f"   Equipment: {substitute.detail.equipment or 'N/A'}")
    click.echo(f"   Score: {substitute.score}")
    click.echo(f"   Why: {substitute.reasoning}")
    click.echo("\n" + "=" * 60)


if __name__ == '__main__':
    cli()
