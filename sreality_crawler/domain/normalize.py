# sreality_crawler/domain/normalize.py
"""
Raw portal detail payload -> ListingDetail.

Pure and deterministic: no I/O, the fetch timestamp is passed in.
Structural problems raise NormalizationError so the worker can count the ID
as failed without marking it processed.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from ..errors import NormalizationError
from .parsing import get_nested, is_yes, parse_czech_number, to_float
from .types import (
    CATEGORY_BY_CODE,
    Coordinates,
    CountrySpecific,
    ListingDetail,
    Location,
    PropertyDetails,
    TransactionType,
)

CURRENCY = "CZK"
COUNTRY_NAME = "Czech Republic"

_DISPOSITION_SEPARATE_KITCHEN = re.compile(r"\+\d")


def _require_mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise NormalizationError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _optional_mapping(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    if value is None:
        return {}
    return _require_mapping(value, key)


def _text_value(value: Any) -> str | None:
    """Upstream wraps most strings as {"value": "..."}."""
    if isinstance(value, dict):
        value = value.get("value")
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _count_or_flag(value: str) -> float:
    n = parse_czech_number(value)
    if n:
        return n
    return 1.0 if is_yes(value) else 0.0


def parse_items(items: Any) -> dict[str, Any]:
    """Map the labelled `items` list onto named attributes by Czech label."""
    if items is None:
        return {}
    if not isinstance(items, list):
        raise NormalizationError("items must be a list")

    out: dict[str, Any] = {}
    for item in items:
        if not isinstance(item, dict):
            raise NormalizationError("items[] entries must be objects")
        name = str(item.get("name") or "").lower()
        raw = item.get("value")
        if isinstance(raw, list):
            raw = ", ".join(str(_text_value(v) or "") for v in raw)
        value = "" if raw is None else str(raw)

        if "dispozice" in name:
            out["disposition"] = value
        elif "užitná plocha" in name or "plocha podlahová" in name:
            out["usable_area"] = parse_czech_number(value)
        elif "plocha pozemku" in name:
            out["land_area"] = parse_czech_number(value)
        elif "vlastnictví" in name:
            out["ownership"] = value
        elif "stavba" in name:
            out["building_type"] = value
        elif "stav objektu" in name:
            out["condition"] = value
        elif "podlaží" in name:
            out["floor"] = value
        elif "balkón" in name:
            out["balconies"] = _count_or_flag(value)
        elif "lodžie" in name:
            out["loggias"] = _count_or_flag(value)
        elif "terasa" in name:
            out["terraces"] = _count_or_flag(value)
        elif "sklep" in name:
            out["has_cellar"] = is_yes(raw)
        elif "výtah" in name:
            out["has_elevator"] = is_yes(raw)
        elif "garáž" in name:
            out["has_garage"] = is_yes(raw)
        elif "bazén" in name:
            out["has_pool"] = is_yes(raw)
        elif "parkování" in name:
            out["parking"] = value
        elif "energetická" in name:
            out["energy_class"] = value
    return out


def disposition_type(disposition: str | None) -> str | None:
    if not disposition:
        return None
    if "kk" in disposition:
        return "kk"
    if _DISPOSITION_SEPARATE_KITCHEN.search(disposition):
        return "1"
    return None


def property_type_for(category_main: Any) -> str:
    try:
        return CATEGORY_BY_CODE[int(category_main)].value
    except (KeyError, TypeError, ValueError):
        return "other"


def extract_city(locality: str | None) -> str | None:
    if not locality:
        return None
    return locality.split(",")[0].strip() or None


def extract_images(payload: dict[str, Any]) -> tuple[str, ...]:
    embedded = _optional_mapping(payload, "_embedded")
    images = embedded.get("images") or []
    if not isinstance(images, list):
        raise NormalizationError("_embedded.images must be a list")

    out: list[str] = []
    for img in images:
        if not isinstance(img, dict):
            continue
        href = get_nested(img, "_links.self.href") or get_nested(img, "_links.dynamicDown.href")
        if href:
            out.append(str(href))
    return tuple(out)


def normalize_detail(
    payload: Any,
    *,
    base_url: str,
    fetched_at: datetime,
) -> ListingDetail:
    data = _require_mapping(payload, "detail payload")

    hash_id = data.get("hash_id")
    if hash_id is None or hash_id == "":
        raise NormalizationError("detail payload has no hash_id")
    listing_id = str(hash_id)

    seo = _optional_mapping(data, "seo")
    geo = _optional_mapping(data, "map")
    details = parse_items(data.get("items"))

    price = to_float(get_nested(data, "price_czk.value_raw"))
    if price is None:
        price = to_float(data.get("price"))

    locality = _text_value(data.get("locality"))

    coordinates = None
    if geo:
        coordinates = Coordinates(lat=to_float(geo.get("lat")) or 0.0, lon=to_float(geo.get("lon")) or 0.0)

    disposition = details.get("disposition")
    self_href = get_nested(data, "_links.self.href") or f"/detail/{listing_id}"

    return ListingDetail(
        id=listing_id,
        title=_text_value(data.get("name")) or "Unknown",
        price=price,
        currency=CURRENCY,
        transaction_type=TransactionType.from_code(seo.get("category_type_cb") or 1),
        property_type=property_type_for(seo.get("category_main_cb") or 1),
        location=Location(
            country=COUNTRY_NAME,
            address=locality,
            city=extract_city(locality),
            coordinates=coordinates,
        ),
        details=PropertyDetails(
            sqm=details.get("usable_area"),
            land_sqm=details.get("land_area"),
            floor=details.get("floor"),
        ),
        country_specific=CountrySpecific(
            disposition=disposition,
            disposition_type=disposition_type(disposition),
            ownership=details.get("ownership"),
            building_type=details.get("building_type"),
            condition=details.get("condition"),
            balconies=details.get("balconies"),
            loggias=details.get("loggias"),
            terraces=details.get("terraces"),
            has_cellar=details.get("has_cellar"),
            has_elevator=details.get("has_elevator"),
            has_garage=details.get("has_garage"),
            has_pool=details.get("has_pool"),
            parking=details.get("parking"),
            energy_class=details.get("energy_class"),
        ),
        url=f"{base_url.rstrip('/')}{self_href}",
        scraped_at=fetched_at,
        description=_text_value(data.get("text")),
        features=(),
        images=extract_images(data),
    )
