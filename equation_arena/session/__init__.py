"""
Session Module - One player's arena and the progress kept between runs.

A session represents one player at the arena:
- Built from content config and engine settings
- Holds the observable store and its scheduler
- Persists only the "crafter normal mode completed" flag
"""

from .game_loop import ArenaSession
from .progress import ProgressStore, CRAFTER_NORMAL_COMPLETED_KEY

__all__ = [
    "ArenaSession",
    "ProgressStore",
    "CRAFTER_NORMAL_COMPLETED_KEY",
]
