# sreality_crawler/domain/transform.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .fingerprint import listing_to_dict
from .types import ListingDetail

_DISPOSITION = re.compile(r"(\d+)\+(\d+|kk)", re.IGNORECASE)


@dataclass(frozen=True)
class Disposition:
    bedrooms: int | None = None
    total_rooms: int | None = None
    kind: str | None = None  # "kk" | "1"


def parse_disposition(disposition: str | None) -> Disposition:
    """
    Czech layout codes:
      2+kk = 2 rooms + kitchenette (kitchen corner inside the living room)
      3+1  = 3 rooms + separate kitchen
    One main room is assumed to be the living room, the rest bedrooms.
    """
    if not disposition:
        return Disposition()
    m = _DISPOSITION.search(disposition)
    if not m:
        return Disposition()

    main_rooms = int(m.group(1))
    kitchen = m.group(2).lower()
    bedrooms = max(main_rooms - 1, 0)

    if kitchen == "kk":
        return Disposition(bedrooms=bedrooms, total_rooms=main_rooms, kind="kk")
    return Disposition(bedrooms=bedrooms, total_rooms=main_rooms + int(kitchen), kind="1")


def has_feature(features: tuple[str, ...] | list[str], keywords: list[str]) -> bool:
    if not features:
        return False
    text = " ".join(features).lower()
    return any(k.lower() in text for k in keywords)


def _country_specific(detail: ListingDetail) -> dict[str, Any]:
    cs = detail.country_specific
    # Keys as the core service expects them for Czech portals.
    fields = {
        "disposition": cs.disposition,
        "disposition_type": cs.disposition_type,
        "vlastnictvi": cs.ownership,
        "stavba": cs.building_type,
        "stav": cs.condition,
        "balkony": cs.balconies,
        "lodzie": cs.loggias,
        "terasy": cs.terraces,
        "sklep": cs.has_cellar,
        "vytah": cs.has_elevator,
        "garaz": cs.has_garage,
        "parkovani": cs.parking,
        "bazeny": cs.has_pool,
        "energeticka_trida": cs.energy_class,
    }
    return {k: v for k, v in fields.items() if v is not None}


def transform_to_standard(detail: ListingDetail, *, country: str) -> dict[str, Any]:
    """ListingDetail -> portal-agnostic StandardProperty dict."""
    disp = parse_disposition(detail.country_specific.disposition)
    cs = detail.country_specific
    loc = detail.location

    coordinates = None
    if loc.coordinates is not None:
        coordinates = {"lat": loc.coordinates.lat, "lon": loc.coordinates.lon}

    return {
        "title": detail.title,
        "price": detail.price or None,
        "currency": detail.currency,
        "property_type": detail.property_type,
        "transaction_type": detail.transaction_type.value,
        "location": {
            "address": loc.address,
            "city": loc.city,
            "country": country,
            "state": loc.region,
            "postal_code": loc.postal_code,
            "coordinates": coordinates,
        },
        "details": {
            "bedrooms": disp.bedrooms or detail.details.bedrooms,
            "bathrooms": detail.details.bathrooms,
            "sqm": detail.details.sqm,
            "rooms": disp.total_rooms or detail.details.rooms,
        },
        "features": list(detail.features),
        "amenities": {
            "has_parking": bool(cs.has_garage) or cs.parking is not None,
            "has_balcony": (cs.balconies or 0) > 0,
            "has_garden": has_feature(detail.features, ["zahrada", "garden"]),
            "has_pool": bool(cs.has_pool),
            "has_elevator": bool(cs.has_elevator),
            "has_cellar": bool(cs.has_cellar),
        },
        "country_specific": _country_specific(detail),
        "images": list(detail.images),
        "description": detail.description,
        "url": detail.url,
        "status": "active",
    }


def build_ingest_payload(detail: ListingDetail, *, portal: str, country: str) -> dict[str, Any]:
    return {
        "portal": portal,
        "portal_id": detail.id,
        "country": country,
        "data": transform_to_standard(detail, country=country),
        "raw_data": listing_to_dict(detail),
    }
