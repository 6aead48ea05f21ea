"""
Enemy roster.

Each enemy occupies one (mode, level) slot. Solver levels 1-4 follow the
operation order of the generator; crafter levels 1-3 follow the crafter
level rules (parentheses, fractions, decimals).
"""

from ..config_schema.models import EnemyConfig, GameMode


def _enemy(
    id: str,
    name: str,
    mode: GameMode,
    level: int,
    health: int = 100,
    attack_interval_ms: int = 20_000,
    solve_time_seconds: int = 90,
    damage: int = 15,
) -> EnemyConfig:
    return EnemyConfig(
        id=id,
        name=name,
        health=health,
        attack_interval_ms=attack_interval_ms,
        solve_time_seconds=solve_time_seconds,
        damage=damage,
        mode=mode,
        level=level,
    )


SOLVER_ENEMIES = (
    _enemy("slime", "Sum Slime", GameMode.SOLVER, 1),
    _enemy("goblin", "Minus Goblin", GameMode.SOLVER, 2, attack_interval_ms=18_000),
    _enemy("golem", "Times Golem", GameMode.SOLVER, 3, health=125,
           attack_interval_ms=16_000, solve_time_seconds=120, damage=20),
    _enemy("wraith", "Divide Wraith", GameMode.SOLVER, 4, health=150,
           attack_interval_ms=15_000, solve_time_seconds=150, damage=20),
)

CRAFTER_ENEMIES = (
    _enemy("bracket_imp", "Bracket Imp", GameMode.CRAFTER, 1,
           attack_interval_ms=25_000, solve_time_seconds=180, damage=10),
    _enemy("fraction_fiend", "Fraction Fiend", GameMode.CRAFTER, 2, health=125,
           attack_interval_ms=25_000, solve_time_seconds=180, damage=15),
    _enemy("decimal_drake", "Decimal Drake", GameMode.CRAFTER, 3, health=150,
           attack_interval_ms=22_000, solve_time_seconds=180, damage=15),
)

DEFAULT_ENEMIES = SOLVER_ENEMIES + CRAFTER_ENEMIES
