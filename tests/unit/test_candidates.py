"""Tests for hs_matching.domain.candidates radius filtering."""

from datetime import UTC, datetime
from typing import Any

from src.hs_matching.domain.candidates import find_candidate_providers, orders_within_radius
from src.hs_order.domain.models import Order
from src.hs_provider.domain.models import Provider


def _make_order(**kwargs: Any) -> Order:
    defaults: dict[str, Any] = dict(
        id="ord-1",
        client_id="client-1",
        category_id=3,
        title="Leaking pipe",
        description="Kitchen sink leaks",
        lat=-34.6,
        lng=-68.3,
        created_at=datetime.now(UTC),
    )
    defaults.update(kwargs)
    return Order(**defaults)


def _make_provider(**kwargs: Any) -> Provider:
    defaults: dict[str, Any] = dict(
        id="prov-1",
        user_id="user-p1",
        category_id=3,
        first_name="Ana",
        last_name="Diaz",
        lat=-34.61,
        lng=-68.31,
    )
    defaults.update(kwargs)
    return Provider(**defaults)


class TestFindCandidateProviders:
    def test_nearby_provider_in_category_matches(self) -> None:
        matches = find_candidate_providers(_make_order(), [_make_provider()], 20.0)
        assert len(matches) == 1
        assert matches[0].provider_id == "prov-1"
        assert matches[0].user_id == "user-p1"
        assert matches[0].distance_km < 2.0

    def test_far_provider_excluded(self) -> None:
        far = _make_provider(lat=-32.89, lng=-68.84)  # ~190 km away
        assert find_candidate_providers(_make_order(), [far], 20.0) == []

    def test_provider_without_location_skipped(self) -> None:
        nowhere = _make_provider(lat=None, lng=None)
        assert find_candidate_providers(_make_order(), [nowhere], 20.0) == []

    def test_inactive_provider_skipped(self) -> None:
        paused = _make_provider(status="paused")
        assert find_candidate_providers(_make_order(), [paused], 20.0) == []

    def test_other_category_skipped(self) -> None:
        other = _make_provider(category_id=9)
        assert find_candidate_providers(_make_order(), [other], 20.0) == []

    def test_secondary_category_matches(self) -> None:
        multi = _make_provider(category_id=9, category_ids=[9, 3])
        assert len(find_candidate_providers(_make_order(), [multi], 20.0)) == 1

    def test_sorted_nearest_first(self) -> None:
        near = _make_provider(id="near", lat=-34.601, lng=-68.301)
        mid = _make_provider(id="mid", lat=-34.65, lng=-68.35)
        matches = find_candidate_providers(_make_order(), [mid, near], 20.0)
        assert [m.provider_id for m in matches] == ["near", "mid"]


class TestOrdersWithinRadius:
    def test_keeps_orders_inside_radius_in_input_order(self) -> None:
        provider = _make_provider(lat=-34.6, lng=-68.3)
        newer = _make_order(id="newer", lat=-34.7, lng=-68.3)
        older = _make_order(id="older", lat=-34.61, lng=-68.3)
        far = _make_order(id="far", lat=-32.89, lng=-68.84)

        nearby = orders_within_radius(provider, [newer, far, older], 50.0)

        assert [n.order.id for n in nearby] == ["newer", "older"]
        assert all(n.distance_km <= 50.0 for n in nearby)

    def test_provider_without_location_sees_nothing(self) -> None:
        provider = _make_provider(lat=None, lng=None)
        assert orders_within_radius(provider, [_make_order()], 50.0) == []

    def test_boundary_is_inclusive(self) -> None:
        provider = _make_provider(lat=0.0, lng=0.0)
        order = _make_order(lat=0.0, lng=0.0)
        assert len(orders_within_radius(provider, [order], 0.0)) == 1
