"""
Default arena content.

Hand-authored grade, enemy, bonus and crafter level tables, bundled into an
ArenaConfig by create_default_config().
"""

from .arena import create_default_config
from .grades import DEFAULT_GRADES
from .enemies import DEFAULT_ENEMIES
from .bonuses import DEFAULT_BONUSES
from .crafter_levels import DEFAULT_CRAFTER_LEVELS

__all__ = [
    "create_default_config",
    "DEFAULT_GRADES",
    "DEFAULT_ENEMIES",
    "DEFAULT_BONUSES",
    "DEFAULT_CRAFTER_LEVELS",
]
