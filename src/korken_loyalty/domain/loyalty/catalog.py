"""Level catalog and the balance -> level resolver.

The catalog is a static table of seven contiguous point bands. It is validated
once at construction; a broken table is a deployment problem, so it fails
with :class:`CatalogConfigurationError` instead of surfacing per request.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Sequence, Tuple

from korken_loyalty.core.errors import CatalogConfigurationError

MIN_LEVEL = 1
MAX_LEVEL = 7


@dataclass(frozen=True, slots=True)
class LevelDefinition:
    """Immutable description of a single loyalty tier."""

    level: int
    name: str
    min_points: int
    max_points: int | None
    benefits: Tuple[str, ...] = field(default_factory=tuple)

    def contains(self, points: int) -> bool:
        if points < self.min_points:
            return False
        return self.max_points is None or points <= self.max_points

    def row_values(self) -> dict[str, Any]:
        """Column values for a ``loyalty_levels`` row."""

        return {
            "name": self.name,
            "min_points": self.min_points,
            "max_points": self.max_points,
            "benefits": list(self.benefits),
        }


DEFAULT_LEVELS: Tuple[LevelDefinition, ...] = (
    LevelDefinition(1, "Novize", 0, 499, ("Einstieg in die Weinwelt",)),
    LevelDefinition(
        2,
        "Kellerfreund",
        500,
        1499,
        ("Willkommensgeschenk (Level 2)", "Persönliche Weinvorschläge"),
    ),
    LevelDefinition(
        3,
        "Kenner",
        1500,
        4999,
        ("Willkommensgeschenk (Level 3)", "Vorverkaufszugang zu neuen Weinen"),
    ),
    LevelDefinition(
        4,
        "Sommelier-Kreis",
        5000,
        11999,
        ("Willkommensgeschenk (Level 4)", "Exklusive Probierpakete"),
    ),
    LevelDefinition(
        5,
        "Weinguts-Partner",
        12000,
        24999,
        ("Willkommensgeschenk (Level 5)", "Zugang zu Winzer-Events"),
    ),
    LevelDefinition(
        6,
        "Connaisseur-Elite",
        25000,
        59999,
        ("Willkommensgeschenk (Level 6)", "Reservierungen & persönliche Beratung"),
    ),
    LevelDefinition(
        7,
        "Grand-Cru Ehrenmitglied",
        60000,
        None,
        (
            "Willkommensgeschenk (Level 7)",
            "Private Tastings",
            "Zugang zu Raritäten",
            "VIP-Status",
        ),
    ),
)


class LevelCatalog:
    """Validated, read-only sequence of level definitions."""

    def __init__(self, entries: Iterable[LevelDefinition]) -> None:
        self._entries: Tuple[LevelDefinition, ...] = tuple(entries)
        self._validate(self._entries)
        self._thresholds = [entry.min_points for entry in self._entries]
        self._by_level = {entry.level: entry for entry in self._entries}

    @classmethod
    def default(cls) -> "LevelCatalog":
        return cls(DEFAULT_LEVELS)

    @classmethod
    def from_rows(cls, rows: Sequence[Any]) -> "LevelCatalog":
        """Build a catalog from ``LoyaltyLevel`` rows (or any attribute-compatible objects)."""

        entries = [
            LevelDefinition(
                level=int(row.level),
                name=str(row.name),
                min_points=int(row.min_points),
                max_points=int(row.max_points) if row.max_points is not None else None,
                benefits=tuple(str(item) for item in (row.benefits or [])),
            )
            for row in sorted(rows, key=lambda row: row.level)
        ]
        return cls(entries)

    @staticmethod
    def _validate(entries: Sequence[LevelDefinition]) -> None:
        if not entries:
            raise CatalogConfigurationError("Level catalog must define at least one level")

        first = entries[0]
        if first.level != MIN_LEVEL:
            raise CatalogConfigurationError(f"Level catalog must start at level {MIN_LEVEL}")
        if first.min_points != 0:
            raise CatalogConfigurationError(
                f"Level {first.level} must start at 0 points, not {first.min_points}"
            )

        for index, entry in enumerate(entries):
            if not MIN_LEVEL <= entry.level <= MAX_LEVEL:
                raise CatalogConfigurationError(f"Level {entry.level} is outside {MIN_LEVEL}..{MAX_LEVEL}")
            if not entry.name.strip():
                raise CatalogConfigurationError(f"Level {entry.level} has no name")
            if entry.max_points is not None and entry.max_points < entry.min_points:
                raise CatalogConfigurationError(
                    f"Level {entry.level} has an empty range {entry.min_points}..{entry.max_points}"
                )

            is_last = index == len(entries) - 1
            if is_last:
                if entry.max_points is not None:
                    raise CatalogConfigurationError(
                        f"Top level {entry.level} must have an open upper bound"
                    )
                continue

            following = entries[index + 1]
            if following.level != entry.level + 1:
                raise CatalogConfigurationError(
                    f"Levels must be consecutive; found {entry.level} followed by {following.level}"
                )
            if entry.max_points is None:
                raise CatalogConfigurationError(
                    f"Only the top level may be open-ended; level {entry.level} is not the top"
                )
            if entry.max_points + 1 != following.min_points:
                kind = "gap" if entry.max_points + 1 < following.min_points else "overlap"
                raise CatalogConfigurationError(
                    f"Point range {kind} between level {entry.level} "
                    f"(max {entry.max_points}) and level {following.level} "
                    f"(min {following.min_points})"
                )

    @property
    def entries(self) -> Tuple[LevelDefinition, ...]:
        return self._entries

    @property
    def lowest(self) -> LevelDefinition:
        return self._entries[0]

    @property
    def highest(self) -> LevelDefinition:
        return self._entries[-1]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, level: int) -> LevelDefinition | None:
        return self._by_level.get(level)

    def resolve_level(self, points: int) -> LevelDefinition:
        """Return the highest level whose ``min_points`` is reached.

        Negative balances are legal in the ledger and resolve to the lowest level.
        """

        index = bisect_right(self._thresholds, points) - 1
        return self._entries[max(index, 0)]

    def next_level(self, level: int) -> LevelDefinition | None:
        return self._by_level.get(level + 1)

    def points_to_next_level(self, points: int) -> int:
        """Points still missing for the next level; ``0`` at the top level."""

        current = self.resolve_level(points)
        following = self.next_level(current.level)
        if following is None:
            return 0
        return following.min_points - points

    def with_updated_level(
        self,
        level: int,
        *,
        name: str | None = None,
        benefits: Sequence[str] | None = None,
    ) -> "LevelCatalog":
        """Return a new catalog with edited name/benefits; ranges are re-validated."""

        current = self._by_level.get(level)
        if current is None:
            raise CatalogConfigurationError(f"Level {level} does not exist")
        updated = replace(
            current,
            name=name if name is not None else current.name,
            benefits=tuple(benefits) if benefits is not None else current.benefits,
        )
        return LevelCatalog(updated if entry.level == level else entry for entry in self._entries)


_DEFAULT_CATALOG = LevelCatalog(DEFAULT_LEVELS)


def get_default_catalog() -> LevelCatalog:
    return _DEFAULT_CATALOG


def resolve_level(points: int, catalog: LevelCatalog | None = None) -> LevelDefinition:
    """Module-level convenience wrapper around :meth:`LevelCatalog.resolve_level`."""

    return (catalog or _DEFAULT_CATALOG).resolve_level(points)


__all__ = [
    "DEFAULT_LEVELS",
    "LevelCatalog",
    "LevelDefinition",
    "MAX_LEVEL",
    "MIN_LEVEL",
    "get_default_catalog",
    "resolve_level",
]
