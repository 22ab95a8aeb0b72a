import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from sreality_crawler.domain.fingerprint import canonical_json, fingerprint, listing_to_dict
from sreality_crawler.domain.normalize import normalize_detail

FETCHED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _detail(payload, fetched_at=FETCHED_AT):
    return normalize_detail(payload, base_url="https://www.sreality.cz", fetched_at=fetched_at)


def test_fingerprint_is_stable_across_fetch_times(detail_payload):
    a = _detail(detail_payload())
    b = _detail(detail_payload(), fetched_at=FETCHED_AT + timedelta(days=3))

    assert fingerprint(a) == fingerprint(b)
    assert len(fingerprint(a)) == 64


def test_fingerprint_changes_with_content(detail_payload):
    a = _detail(detail_payload())
    cheaper = replace(a, price=5200000.0)
    assert fingerprint(a) != fingerprint(cheaper)


def test_canonical_json_is_sorted_and_compact(detail_payload):
    body = canonical_json(_detail(detail_payload()))

    parsed = json.loads(body)
    assert body == json.dumps(parsed, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    assert list(parsed) == sorted(parsed)
    assert "scraped_at" not in parsed
    # non-ASCII kept as-is
    assert "Smíchov" in body


def test_listing_to_dict_is_json_safe(detail_payload):
    d = listing_to_dict(_detail(detail_payload()))
    assert d["transaction_type"] == "sale"
    assert d["scraped_at"] == FETCHED_AT.isoformat()
    assert isinstance(d["images"], list)
    json.dumps(d)
