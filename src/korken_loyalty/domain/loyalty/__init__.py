from .badges import (  # noqa: F401
    DEFAULT_BADGE_RULES,
    BadgeEligibilityEngine,
    BadgeRule,
    BadgeSignalKind,
    BadgeSignals,
)
from .catalog import (  # noqa: F401
    DEFAULT_LEVELS,
    LevelCatalog,
    LevelDefinition,
    get_default_catalog,
    resolve_level,
)
from .points import (  # noqa: F401
    POINT_REWARDS,
    PointAction,
    points_for_action,
    points_for_purchase,
)
