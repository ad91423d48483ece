"""
Listing filter model: compact wire parameters and normalized UI state.

``FilterParams`` is what travels in query strings and saved filter payloads;
every field is optional and default values are left out. ``FilterState`` is
the fully populated form the listing UI works with. The two conversion
functions below are pure and total.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Union

WEDDING_CATEGORIES = ("dress", "decor", "accessories", "stationery", "gifts")
ITEM_CONDITIONS = (
    "new_with_tags",
    "new_without_tags",
    "like_new",
    "gently_used",
    "visible_wear",
)
SORT_DIRECTIONS = ("asc", "desc")

DEFAULT_PRICE_MIN = 0
DEFAULT_PRICE_MAX = 10000
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_DIRECTION = "desc"

SortDirection = Literal["asc", "desc"]
Number = Union[int, float]

# attribute name -> camelCase wire key
_WIRE_KEYS = {
    "search": "search",
    "categories": "categories",
    "conditions": "conditions",
    "price_min": "priceMin",
    "price_max": "priceMax",
    "styles": "styles",
    "colors": "colors",
    "page": "page",
    "limit": "limit",
    "sort_by": "sortBy",
    "sort_direction": "sortDirection",
}
_TAG_FIELDS = ("categories", "conditions", "styles", "colors")


def _parse_number(raw: str) -> Number:
    value = float(raw)
    return int(value) if value.is_integer() else value


def _split_tags(raw: str) -> tuple[str, ...]:
    return tuple(tag for tag in raw.split(",") if tag)


@dataclass(frozen=True)
class FilterParams:
    search: Optional[str] = None
    categories: Optional[tuple[str, ...]] = None
    conditions: Optional[tuple[str, ...]] = None
    price_min: Optional[Number] = None
    price_max: Optional[Number] = None
    styles: Optional[tuple[str, ...]] = None
    colors: Optional[tuple[str, ...]] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    sort_by: Optional[str] = None
    sort_direction: Optional[SortDirection] = None

    def __post_init__(self):
        # Accept lists or a single tag from callers but keep the record hashable.
        for name in _TAG_FIELDS:
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, (value,))
            elif value is not None and not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    def to_dict(self) -> dict:
        """Return the camelCase wire payload, omitting unset fields."""
        payload: dict[str, Any] = {}
        for name, key in _WIRE_KEYS.items():
            value = getattr(self, name)
            if value is None:
                continue
            payload[key] = list(value) if name in _TAG_FIELDS else value
        return payload

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "FilterParams":
        """Build params from a camelCase payload; unknown keys are ignored."""
        if not payload:
            return cls()
        values = {}
        for name, key in _WIRE_KEYS.items():
            value = payload.get(key)
            if value is not None:
                values[name] = value
        return cls(**values)

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "FilterParams":
        """
        Parse listing query-string parameters.

        Tag lists are comma separated, empty values count as absent and an
        unrecognised sort direction is dropped. Raises ValueError for numeric
        fields that do not parse.
        """
        values: dict[str, Any] = {}
        for name, key in _WIRE_KEYS.items():
            raw = query.get(key)
            if not raw:
                continue
            if name in _TAG_FIELDS:
                values[name] = _split_tags(raw)
            elif name in ("price_min", "price_max"):
                values[name] = _parse_number(raw)
            elif name in ("page", "limit"):
                values[name] = int(raw)
            elif name == "sort_direction":
                if raw in SORT_DIRECTIONS:
                    values[name] = raw
            else:
                values[name] = raw
        return cls(**values)


@dataclass(frozen=True)
class PriceRange:
    min: Number = DEFAULT_PRICE_MIN
    max: Number = DEFAULT_PRICE_MAX


@dataclass(frozen=True)
class FilterState:
    search: str = ""
    categories: tuple[str, ...] = ()
    conditions: tuple[str, ...] = ()
    price_range: PriceRange = field(default_factory=PriceRange)
    styles: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    sort_by: str = DEFAULT_SORT_BY
    sort_direction: SortDirection = DEFAULT_SORT_DIRECTION

    def to_dict(self) -> dict:
        return {
            "search": self.search,
            "categories": list(self.categories),
            "conditions": list(self.conditions),
            "priceRange": {"min": self.price_range.min, "max": self.price_range.max},
            "styles": list(self.styles),
            "colors": list(self.colors),
            "sortBy": self.sort_by,
            "sortDirection": self.sort_direction,
        }


def default_filter_state() -> FilterState:
    """Return a fresh canonical empty filter."""
    return FilterState()


DEFAULT_FILTER_STATE = default_filter_state()


def _or_default(value, default):
    return default if value is None else value


def filter_params_to_state(params: FilterParams) -> FilterState:
    """Fill every unset field of ``params`` with its default."""
    return FilterState(
        search=_or_default(params.search, DEFAULT_FILTER_STATE.search),
        categories=tuple(_or_default(params.categories, ())),
        conditions=tuple(_or_default(params.conditions, ())),
        price_range=PriceRange(
            min=_or_default(params.price_min, DEFAULT_PRICE_MIN),
            max=_or_default(params.price_max, DEFAULT_PRICE_MAX),
        ),
        styles=tuple(_or_default(params.styles, ())),
        colors=tuple(_or_default(params.colors, ())),
        sort_by=_or_default(params.sort_by, DEFAULT_SORT_BY),
        sort_direction=_or_default(params.sort_direction, DEFAULT_SORT_DIRECTION),
    )


def filter_state_to_params(state: FilterState) -> FilterParams:
    """
    Convert state back to wire params, emitting only non-default fields.

    Explicit default values are indistinguishable from unset ones after this
    step, so ``filter_state_to_params(filter_params_to_state(p))`` can differ
    from ``p``. Converting the result back to state is stable.
    """
    price = state.price_range
    return FilterParams(
        search=state.search or None,
        categories=state.categories or None,
        conditions=state.conditions or None,
        price_min=price.min if price.min != DEFAULT_PRICE_MIN else None,
        price_max=price.max if price.max != DEFAULT_PRICE_MAX else None,
        styles=state.styles or None,
        colors=state.colors or None,
        sort_by=state.sort_by if state.sort_by != DEFAULT_SORT_BY else None,
        sort_direction=(
            state.sort_direction
            if state.sort_direction != DEFAULT_SORT_DIRECTION
            else None
        ),
    )
