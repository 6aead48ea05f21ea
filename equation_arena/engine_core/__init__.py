"""
Engine Core - Deterministic arena state management and combat resolution.

The engine is the runtime that:
1. Holds ArenaState in an observable store
2. Applies commands via the reducer
3. Parses and evaluates equations exactly
4. Detects bonuses and computes damage and score
5. Drives enemy attacks and delayed feedback through a scheduler
"""

from .state import (
    ArenaState,
    CompletedLevel,
    CrafterFeedback,
    CrafterSubMode,
    EnemyScaling,
    GameStatus,
    OperationType,
    SpellType,
    TimerKey,
)
from .command import Command, CommandType, CommandPayload, CommandResult, TimerRequest
from .reducer import Reducer, apply_command
from .scheduler import CancellationToken, ManualScheduler, Scheduler
from .store import ArenaStore
from .expression import EvaluationResult, ExpressionError, evaluate_equation, parse_equation
from .display import DisplaySegment, segment_equation

__all__ = [
    "ArenaState",
    "CompletedLevel",
    "CrafterFeedback",
    "CrafterSubMode",
    "EnemyScaling",
    "GameStatus",
    "OperationType",
    "SpellType",
    "TimerKey",
    "Command",
    "CommandType",
    "CommandPayload",
    "CommandResult",
    "TimerRequest",
    "Reducer",
    "apply_command",
    "CancellationToken",
    "ManualScheduler",
    "Scheduler",
    "ArenaStore",
    "EvaluationResult",
    "ExpressionError",
    "evaluate_equation",
    "parse_equation",
    "DisplaySegment",
    "segment_equation",
]
