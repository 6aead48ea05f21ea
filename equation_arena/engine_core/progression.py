"""
Progression - Scoring, enemy selection and challenge scaling.

Scoring per level:
- 10 points per correct equation
- +25 the first time a bonus is used in the level, +10 for repeats
- +50 on level completion (added when the victory is finalized)

Challenge sub-mode picks a random crafter enemy (never the one just fought)
and scales it by counters recorded at its previous encounter. After each
encounter the lagging counter is bumped, so health and speed grow in turn.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable
import random

from .state import EnemyScaling
from ..config_schema.models import ArenaConfig, BonusConfig, EnemyConfig, GameMode
from ..core.settings import EngineSettings
from ..core.logging import get_logger

logger = get_logger(__name__)


BASE_POINTS = 10
FIRST_BONUS_POINTS = 25
REPEAT_BONUS_POINTS = 10
LEVEL_COMPLETION_POINTS = 50

SCALE_STEP = 0.10


@dataclass(frozen=True)
class ScoreAward:
    points: int
    bonus_ids_used: frozenset[str]


def score_correct_answer(
    bonuses: Iterable[BonusConfig],
    bonus_ids_used: frozenset[str],
) -> ScoreAward:
    """Points for one correct equation and the updated set of seen bonus ids."""
    points = BASE_POINTS
    used = set(bonus_ids_used)
    for bonus in bonuses:
        if bonus.id in used:
            points += REPEAT_BONUS_POINTS
        else:
            points += FIRST_BONUS_POINTS
            used.add(bonus.id)
    return ScoreAward(points=points, bonus_ids_used=frozenset(used))


@dataclass(frozen=True)
class EncounterStats:
    """Effective stats of one enemy encounter."""
    health: int
    attack_interval_ms: int
    solve_time_ms: int
    damage: int


def base_stats(enemy: EnemyConfig) -> EncounterStats:
    return EncounterStats(
        health=enemy.health,
        attack_interval_ms=enemy.attack_interval_ms,
        solve_time_ms=enemy.solve_time_seconds * 1000,
        damage=enemy.damage,
    )


def scaled_stats(
    enemy: EnemyConfig,
    scaling: EnemyScaling,
    settings: EngineSettings,
) -> EncounterStats:
    """Health +10% per health level; interval and solve time -10% per interval level."""
    health = round(enemy.health * (1 + SCALE_STEP * scaling.health_scale_level))
    speed_factor = max(0.0, 1 - SCALE_STEP * scaling.interval_scale_level)
    interval = max(settings.min_attack_interval_ms, round(enemy.attack_interval_ms * speed_factor))
    solve_time = max(
        settings.min_solve_time_seconds * 1000,
        round(enemy.solve_time_seconds * 1000 * speed_factor),
    )
    return EncounterStats(
        health=max(1, health),
        attack_interval_ms=interval,
        solve_time_ms=solve_time,
        damage=enemy.damage,
    )


def next_scaling(scaling: EnemyScaling) -> EnemyScaling:
    """Bump whichever counter lags (health on ties)."""
    if scaling.health_scale_level <= scaling.interval_scale_level:
        return EnemyScaling(
            health_scale_level=scaling.health_scale_level + 1,
            interval_scale_level=scaling.interval_scale_level,
        )
    return EnemyScaling(
        health_scale_level=scaling.health_scale_level,
        interval_scale_level=scaling.interval_scale_level + 1,
    )


def select_challenge_enemy(
    config: ArenaConfig,
    previous_enemy_id: str | None,
    rng: random.Random,
) -> EnemyConfig | None:
    """Uniform choice among crafter enemies, excluding the previous one."""
    pool = config.enemies_for_mode(GameMode.CRAFTER)
    candidates = [e for e in pool if e.id != previous_enemy_id] or pool
    if not candidates:
        logger.error("challenge_enemy_pool_empty")
        return None
    return rng.choice(candidates)


@dataclass(frozen=True)
class ChallengeEncounter:
    enemy: EnemyConfig
    stats: EncounterStats
    scaling_table: dict[str, EnemyScaling]


def plan_challenge_encounter(
    config: ArenaConfig,
    previous_enemy_id: str | None,
    scaling_table: dict[str, EnemyScaling],
    settings: EngineSettings,
    rng: random.Random,
) -> ChallengeEncounter | None:
    """Pick the next challenge enemy, its stats, and the updated scaling table."""
    enemy = select_challenge_enemy(config, previous_enemy_id, rng)
    if enemy is None:
        return None
    recorded = scaling_table.get(enemy.id, EnemyScaling())
    stats = scaled_stats(enemy, recorded, settings)
    updated = dict(scaling_table)
    updated[enemy.id] = next_scaling(recorded)
    return ChallengeEncounter(enemy=enemy, stats=stats, scaling_table=updated)
