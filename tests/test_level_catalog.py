import pytest

from korken_loyalty.core.errors import CatalogConfigurationError
from korken_loyalty.domain.loyalty.catalog import (
    DEFAULT_LEVELS,
    LevelCatalog,
    LevelDefinition,
    get_default_catalog,
    resolve_level,
)


def _levels(*bands):
    return [
        LevelDefinition(level=index + 1, name=f"L{index + 1}", min_points=low, max_points=high)
        for index, (low, high) in enumerate(bands)
    ]


def test_default_catalog_is_contiguous() -> None:
    catalog = get_default_catalog()

    assert len(catalog) == 7
    assert catalog.lowest.min_points == 0
    assert catalog.highest.max_points is None
    for current, following in zip(DEFAULT_LEVELS, DEFAULT_LEVELS[1:]):
        assert current.max_points + 1 == following.min_points


@pytest.mark.parametrize(
    ("points", "expected"),
    [
        (0, 1),
        (499, 1),
        (500, 2),
        (1499, 2),
        (1500, 3),
        (4999, 3),
        (5000, 4),
        (12000, 5),
        (25000, 6),
        (59999, 6),
        (60000, 7),
        (10_000_000, 7),
    ],
)
def test_resolve_level_boundaries(points: int, expected: int) -> None:
    assert resolve_level(points).level == expected


def test_negative_balance_resolves_to_first_level() -> None:
    assert resolve_level(-250).level == 1


def test_resolution_is_monotonic_and_inside_band() -> None:
    catalog = get_default_catalog()
    previous = 0
    for points in range(0, 70_000, 137):
        level = catalog.resolve_level(points)
        assert level.level >= previous
        assert level.contains(points)
        previous = level.level


def test_points_to_next_level() -> None:
    catalog = get_default_catalog()

    assert catalog.points_to_next_level(0) == 500
    assert catalog.points_to_next_level(1450) == 50
    assert catalog.points_to_next_level(60000) == 0
    assert catalog.next_level(7) is None
    assert catalog.next_level(2).name == "Kenner"


@pytest.mark.parametrize(
    "entries",
    [
        [],
        _levels((1, 499), (500, None)),
        _levels((0, 499), (501, None)),
        _levels((0, 499), (450, None)),
        _levels((0, None), (500, None)),
        _levels((0, 499), (500, 999)),
        [
            LevelDefinition(1, "L1", 0, 499),
            LevelDefinition(3, "L3", 500, None),
        ],
        [
            LevelDefinition(2, "L2", 0, 499),
            LevelDefinition(3, "L3", 500, None),
        ],
    ],
    ids=["empty", "nonzero-start", "gap", "overlap", "open-middle", "closed-top", "skipped", "wrong-first"],
)
def test_invalid_catalogs_are_rejected(entries) -> None:
    with pytest.raises(CatalogConfigurationError):
        LevelCatalog(entries)


def test_with_updated_level_returns_new_catalog() -> None:
    catalog = get_default_catalog()

    updated = catalog.with_updated_level(2, benefits=["Gratis Versand"], name="Kellerfreundin")

    assert updated.get(2).benefits == ("Gratis Versand",)
    assert updated.get(2).name == "Kellerfreundin"
    assert updated.get(2).min_points == 500
    assert catalog.get(2).name == "Kellerfreund"


def test_with_updated_level_rejects_unknown_level() -> None:
    with pytest.raises(CatalogConfigurationError):
        get_default_catalog().with_updated_level(9, benefits=["x"])


def test_from_rows_sorts_and_validates() -> None:
    class Row:
        def __init__(self, level, name, min_points, max_points, benefits):
            self.level = level
            self.name = name
            self.min_points = min_points
            self.max_points = max_points
            self.benefits = benefits

    catalog = LevelCatalog.from_rows(
        [Row(2, "Zwei", 100, None, ["b"]), Row(1, "Eins", 0, 99, None)]
    )

    assert [entry.level for entry in catalog] == [1, 2]
    assert catalog.get(1).benefits == ()
    assert catalog.resolve_level(150).name == "Zwei"
