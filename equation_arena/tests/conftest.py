"""
Pytest fixtures for Equation Arena tests.
"""

import os
import random

import pytest
import structlog

from ..config_schema.models import ArenaConfig, GameMode
from ..content import create_default_config
from ..core.settings import EngineSettings
from ..engine_core.command import Command
from ..engine_core.reducer import Reducer
from ..engine_core.scheduler import ManualScheduler
from ..engine_core.state import ArenaState, CrafterSubMode, GameStatus
from ..engine_core.store import ArenaStore


class ScriptedRandom(random.Random):
    """Random generator that replays scripted randint results and choice indexes."""

    def __init__(self, ints=(), choices=()):
        super().__init__(0)
        self.ints = list(ints)
        self.choices = list(choices)

    def randint(self, a, b):
        if self.ints:
            return self.ints.pop(0)
        return a

    def choice(self, seq):
        if self.choices:
            return seq[self.choices.pop(0)]
        return seq[0]


@pytest.fixture(autouse=True)
def clean_arena_env(monkeypatch):
    """Keep ARENA_* variables from the host out of EngineSettings."""
    for key in list(os.environ):
        if key.startswith("ARENA_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo configure_logging() calls (e.g. from cli.main) after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def arena_config() -> ArenaConfig:
    """The bundled arena content."""
    return create_default_config()


@pytest.fixture
def settings() -> EngineSettings:
    """Default engine settings."""
    return EngineSettings()


@pytest.fixture
def scripted_rng() -> ScriptedRandom:
    """First solver problem is 3 + 4."""
    return ScriptedRandom(ints=[3, 4])


@pytest.fixture
def reducer(arena_config, settings, scripted_rng) -> Reducer:
    return Reducer(config=arena_config, settings=settings, rng=scripted_rng)


def apply_all(reducer: Reducer, state: ArenaState, *commands: Command) -> ArenaState:
    """Apply commands in order, keeping the last successful state."""
    for command in commands:
        result = reducer.apply(state, command)
        if result.success:
            state = result.new_state
    return state


@pytest.fixture
def solver_state(reducer) -> ArenaState:
    """Solver level 1 in SOLVING with equation "3 + 4 = ?"."""
    state = apply_all(
        reducer,
        reducer.initial_state(),
        Command.set_grade(1),
        Command.start_game(),
    )
    assert state.game_status == GameStatus.SOLVING
    return state


def crafter_state_at(reducer: Reducer, level: int, completed: bool = True) -> ArenaState:
    """Crafter normal mode, tutorial done, at the given level in SOLVING."""
    state = apply_all(
        reducer,
        reducer.initial_state(crafter_normal_completed=completed),
        Command.start_game(GameMode.CRAFTER, CrafterSubMode.NORMAL),
    )
    if state.game_status == GameStatus.TUTORIAL:
        state = apply_all(reducer, state, Command.skip_tutorial_and_start())
    if level != 1:
        enemy = reducer.config.get_enemy(GameMode.CRAFTER, level)
        level_config = reducer.config.get_crafter_level(level)
        state = state._copy_with(
            current_level_number=level,
            current_enemy_id=enemy.id,
            current_enemy_config=enemy,
            enemy_health=enemy.health,
            max_enemy_health=enemy.health,
            allowed_crafter_chars=level_config.allowed_chars,
        )
    assert state.game_status == GameStatus.SOLVING
    return state


def craft(reducer: Reducer, state: ArenaState, equation: str) -> ArenaState:
    """Type an equation one character at a time."""
    for char in equation:
        result = reducer.apply(state, Command.append_to_crafted_equation(char))
        assert result.success, f"could not append {char!r} to {state.crafted_equation_string!r}"
        state = result.new_state
    return state


def answer(reducer: Reducer, state: ArenaState, text: str) -> ArenaState:
    for char in text:
        result = reducer.apply(state, Command.handle_input(char))
        assert result.success, f"could not type {char!r} after {state.player_input!r}"
        state = result.new_state
    return state


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store(reducer, manual_scheduler) -> ArenaStore:
    return ArenaStore(reducer, manual_scheduler)
