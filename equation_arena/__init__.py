"""
Equation Arena - Arithmetic Combat Engine

A deterministic, timer-driven engine for a turn-based educational battle.
The player defeats enemies by solving (solver mode) or authoring (crafter
mode) arithmetic equations while the enemy attacks on a countdown.

The engine provides:
- A single reducer that applies commands to an immutable state snapshot
- An owned arithmetic parser/evaluator with step traces
- Crafting validation and bonus detection on parsed expressions
- Scoring, level progression and challenge-mode enemy scaling
- A state container with subscribers and an injected scheduler
"""

__version__ = "0.1.0"
