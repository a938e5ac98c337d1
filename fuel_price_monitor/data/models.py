"""
Data models for fuel prices, trends and reports.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from types import MappingProxyType
from typing import Dict, Any, Optional, List, Tuple, Iterable, Iterator, ClassVar, Mapping


class FuelType(Enum):
    """Fuel type enumeration, declared in report order."""
    E10 = "E10"
    U91 = "U91"
    U95 = "U95"
    U98 = "U98"
    DIESEL = "Diesel"
    LPG = "LPG"

    def __str__(self) -> str:
        return self.value


class Region(Enum):
    """Region enumeration, declared in report order. ALL is the aggregate region."""
    ALL = "All"
    VIC = "VIC"
    NSW = "NSW"
    QLD = "QLD"
    WA = "WA"

    def __str__(self) -> str:
        return self.value

    @property
    def is_state(self) -> bool:
        return self is not Region.ALL

    @classmethod
    def states(cls) -> List["Region"]:
        """Regions that are individual states."""
        return [region for region in cls if region.is_state]


ALL_FUEL_TYPES: Tuple[FuelType, ...] = tuple(FuelType)
ALL_REGIONS: Tuple[Region, ...] = tuple(Region)


@dataclass(frozen=True)
class PricePoint:
    """One observed price at one place and time."""
    timestamp: int  # Epoch milliseconds
    state: str
    suburb: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "state": self.state,
            "suburb": self.suburb,
            "price": self.price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricePoint":
        return cls(
            timestamp=int(data["timestamp"]),
            state=str(data["state"]),
            suburb=str(data["suburb"]),
            price=float(data["price"]),
        )


@dataclass(frozen=True)
class Observation:
    """Normalized feed entry. Index 1 is the representative price of its group."""
    fuel_type: FuelType
    region: Region
    index: int
    price_point: PricePoint


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class Magnitude(Enum):
    FAST = "fast"
    NORMAL = "normal"


@total_ordering
@dataclass(frozen=True)
class Trend:
    """
    Classified price movement.

    A trend is a direction plus a magnitude. The five valid combinations are
    exposed as class attributes (``Trend.FAST_DROP`` ... ``Trend.FAST_RAISE``)
    and are ordered from fastest drop to fastest raise.
    """
    direction: Direction
    magnitude: Magnitude = Magnitude.NORMAL

    FAST_DROP: ClassVar["Trend"]
    DROPPED: ClassVar["Trend"]
    NO_CHANGE: ClassVar["Trend"]
    RAISED: ClassVar["Trend"]
    FAST_RAISE: ClassVar["Trend"]

    def __post_init__(self):
        if self.direction is Direction.FLAT and self.magnitude is Magnitude.FAST:
            raise ValueError("A flat trend has no speed")

    @property
    def is_change(self) -> bool:
        return self.direction is not Direction.FLAT

    @property
    def is_rising(self) -> bool:
        return self.direction is Direction.UP

    @property
    def is_fast(self) -> bool:
        return self.is_change and self.magnitude is Magnitude.FAST

    @property
    def name(self) -> str:
        return _TREND_NAMES[self]

    @property
    def arrow(self) -> str:
        return _TREND_ARROWS[self]

    def _rank(self) -> int:
        return _TREND_ORDER.index(self)

    def __lt__(self, other: "Trend") -> bool:
        if not isinstance(other, Trend):
            return NotImplemented
        return self._rank() < other._rank()

    def __str__(self) -> str:
        return self.name


Trend.FAST_DROP = Trend(Direction.DOWN, Magnitude.FAST)
Trend.DROPPED = Trend(Direction.DOWN, Magnitude.NORMAL)
Trend.NO_CHANGE = Trend(Direction.FLAT, Magnitude.NORMAL)
Trend.RAISED = Trend(Direction.UP, Magnitude.NORMAL)
Trend.FAST_RAISE = Trend(Direction.UP, Magnitude.FAST)

_TREND_ORDER: Tuple[Trend, ...] = (
    Trend.FAST_DROP,
    Trend.DROPPED,
    Trend.NO_CHANGE,
    Trend.RAISED,
    Trend.FAST_RAISE,
)

_TREND_NAMES: Dict[Trend, str] = {
    Trend.FAST_DROP: "FastDrop",
    Trend.DROPPED: "Dropped",
    Trend.NO_CHANGE: "NoChange",
    Trend.RAISED: "Raised",
    Trend.FAST_RAISE: "FastRaise",
}

_TREND_ARROWS: Dict[Trend, str] = {
    Trend.NO_CHANGE: "➡️",
    Trend.RAISED: "↗️",
    Trend.DROPPED: "↘️",
    Trend.FAST_RAISE: "⬆️",
    Trend.FAST_DROP: "⬇️",
}


@dataclass(frozen=True)
class PriceReport:
    """Trend report for one (fuel type, region) pair in one run."""
    fuel_type: FuelType
    region: Region
    latest_prices: Tuple[PricePoint, ...]
    history_prices: Tuple[PricePoint, ...]
    price_delta: float
    trend: Trend

    @property
    def best_price(self) -> Optional[float]:
        if not self.latest_prices:
            return None
        return self.latest_prices[0].price

    @property
    def price_changed(self) -> bool:
        return self.trend.is_change

    @property
    def label(self) -> str:
        return f"{self.fuel_type}@{self.region}"


ReportKey = Tuple[FuelType, Region]


def history_key(fuel_type: FuelType, region: Region) -> str:
    """Composite history store key for a (fuel type, region) pair."""
    return f"{fuel_type.value}-{region.value}"


@dataclass(frozen=True)
class ReportSet:
    """
    All reports of one run, keyed by (fuel type, region).

    Iteration yields reports in fuel type order, then region order, following
    the declaration order of FuelType and Region. Keys whose report could not
    be built are listed in ``failures`` instead. Both mappings are read-only.
    """
    reports: Mapping[ReportKey, PriceReport] = field(default_factory=dict)
    failures: Mapping[ReportKey, Exception] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "reports", MappingProxyType(dict(self.reports)))
        object.__setattr__(self, "failures", MappingProxyType(dict(self.failures)))

    @classmethod
    def from_reports(
        cls,
        reports: Iterable[PriceReport],
        failures: Optional[Mapping[ReportKey, Exception]] = None
    ) -> "ReportSet":
        return cls(
            reports={(report.fuel_type, report.region): report for report in reports},
            failures=failures or {}
        )

    def get(self, fuel_type: FuelType, region: Region) -> Optional[PriceReport]:
        return self.reports.get((fuel_type, region))

    def __iter__(self) -> Iterator[PriceReport]:
        for fuel_type in ALL_FUEL_TYPES:
            for region in ALL_REGIONS:
                report = self.reports.get((fuel_type, region))
                if report is not None:
                    yield report

    def __len__(self) -> int:
        return len(self.reports)

    def __contains__(self, key: ReportKey) -> bool:
        return key in self.reports

    @property
    def changed_reports(self) -> List[PriceReport]:
        return [report for report in self if report.price_changed]
