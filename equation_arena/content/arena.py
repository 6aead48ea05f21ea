"""
Default Arena - Bundles the content tables into one ArenaConfig.
"""

from ..config_schema.models import ArenaConfig
from .grades import DEFAULT_GRADES
from .enemies import DEFAULT_ENEMIES
from .bonuses import DEFAULT_BONUSES
from .crafter_levels import DEFAULT_CRAFTER_LEVELS


def create_default_config() -> ArenaConfig:
    """Build the shipped arena content."""
    return ArenaConfig(
        grades=DEFAULT_GRADES,
        enemies=DEFAULT_ENEMIES,
        bonuses=DEFAULT_BONUSES,
        crafter_levels=DEFAULT_CRAFTER_LEVELS,
    )
