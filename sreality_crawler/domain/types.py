# sreality_crawler/domain/types.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    sale = "sale"
    rent = "rent"

    @property
    def code(self) -> int:
        return TRANSACTION_CODES[self]

    @classmethod
    def from_code(cls, code: Any) -> "TransactionType":
        return cls.sale if code == TRANSACTION_CODES[cls.sale] else cls.rent


class Category(str, Enum):
    apartment = "apartment"
    house = "house"
    land = "land"
    commercial = "commercial"

    @property
    def code(self) -> int:
        return CATEGORY_CODES[self]


# upstream: category_type_cb
TRANSACTION_CODES: dict[TransactionType, int] = {
    TransactionType.sale: 1,
    TransactionType.rent: 2,
}

# upstream: category_main_cb (same codes for sale and rent; the old rent table put commercial at 3)
CATEGORY_CODES: dict[Category, int] = {
    Category.apartment: 1,
    Category.house: 2,
    Category.land: 3,
    Category.commercial: 4,
}

CATEGORY_BY_CODE: dict[int, Category] = {code: cat for cat, code in CATEGORY_CODES.items()}

ALL_CATEGORIES = "all"


def categories_for(selection: str | Category) -> list[Category]:
    """'all' expands to every category in code order; anything else must name one."""
    if isinstance(selection, Category):
        return [selection]
    if selection == ALL_CATEGORIES:
        return sorted(Category, key=lambda c: c.code)
    try:
        return [Category(selection)]
    except ValueError:
        raise ValueError(f"unknown category: {selection!r}") from None


@dataclass(frozen=True)
class DiscoveryPage:
    ids: tuple[str, ...]
    total: int

    def expected_pages(self, page_size: int) -> int:
        if page_size <= 0:
            return 0
        return math.ceil(self.total / page_size)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


@dataclass(frozen=True)
class Location:
    country: str
    address: str | None = None
    city: str | None = None
    district: str | None = None
    region: str | None = None
    postal_code: str | None = None
    coordinates: Coordinates | None = None


@dataclass(frozen=True)
class PropertyDetails:
    rooms: int | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    sqm: float | None = None
    land_sqm: float | None = None
    floor: str | None = None
    build_year: int | None = None


@dataclass(frozen=True)
class CountrySpecific:
    """Czech attributes kept verbatim from the portal."""

    disposition: str | None = None  # "2+kk", "3+1"
    disposition_type: str | None = None  # "kk" | "1"
    ownership: str | None = None  # vlastnictví
    building_type: str | None = None  # stavba
    condition: str | None = None  # stav objektu
    balconies: float | None = None
    loggias: float | None = None
    terraces: float | None = None
    has_cellar: bool | None = None
    has_elevator: bool | None = None
    has_garage: bool | None = None
    has_pool: bool | None = None
    parking: str | None = None
    energy_class: str | None = None


@dataclass(frozen=True)
class ListingDetail:
    id: str
    title: str
    price: float | None
    currency: str
    transaction_type: TransactionType
    property_type: str
    location: Location
    details: PropertyDetails
    country_specific: CountrySpecific
    url: str
    scraped_at: datetime
    description: str | None = None
    features: tuple[str, ...] = ()
    images: tuple[str, ...] = ()


@dataclass
class WorkerStats:
    """Per-worker counters. Owned by one DetailWorker instance."""

    processed: int = 0
    changed: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    missing: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "changed": self.changed,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "missing": self.missing,
        }


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    multiplier: float = 2.0
    max_delay_ms: int = 30000
    timeout_s: float = 30.0


@dataclass(frozen=True)
class QueueStats:
    total_discovered: int
    queue_depth: int
    processed_count: int
    failed_count: int
    missing_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalDiscovered": self.total_discovered,
            "queueDepth": self.queue_depth,
            "processedCount": self.processed_count,
            "failedCount": self.failed_count,
            "missingCount": self.missing_count,
        }
