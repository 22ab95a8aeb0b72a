# sreality_crawler/domain/fingerprint.py
from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from typing import Any

from .types import ListingDetail

# Changes on every fetch; must not make an untouched listing look changed.
VOLATILE_FIELDS: frozenset[str] = frozenset({"scraped_at"})


def listing_to_dict(detail: ListingDetail) -> dict[str, Any]:
    """JSON-safe plain dict of a ListingDetail (enums as values, datetime as ISO)."""
    out = asdict(detail)
    out["transaction_type"] = detail.transaction_type.value
    out["scraped_at"] = detail.scraped_at.isoformat()
    out["features"] = list(detail.features)
    out["images"] = list(detail.images)
    return out


def canonical_json(detail: ListingDetail) -> str:
    body = {k: v for k, v in listing_to_dict(detail).items() if k not in VOLATILE_FIELDS}
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(detail: ListingDetail) -> str:
    return hashlib.sha256(canonical_json(detail).encode("utf-8")).hexdigest()
