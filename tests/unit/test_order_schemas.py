"""Tests for hs_order request/response schemas."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.hs_matching.domain.candidates import NearbyOrder
from src.hs_order.application.schemas import (
    AcceptPostulationRequest,
    AcceptPostulationResponse,
    AvailableJobResponse,
    CreateOrderRequest,
    OrderResponse,
    SubmitPostulationRequest,
)
from src.hs_order.domain.models import AcceptanceResult, Order


def _valid_create(**overrides: object) -> dict:
    body: dict = {
        "category_id": 3,
        "title": "Leaking pipe",
        "description": "Kitchen sink leaks",
        "lat": -34.6,
        "lng": -68.3,
    }
    body.update(overrides)
    return body


def _make_order() -> Order:
    return Order(
        id="ord-1",
        client_id="client-1",
        category_id=3,
        title="Leaking pipe",
        description="Kitchen sink leaks",
        lat=-34.6,
        lng=-68.3,
    )


class TestCreateOrderRequest:
    def test_valid(self) -> None:
        req = CreateOrderRequest(**_valid_create(images=["https://cdn/a.png"]))
        assert req.category_id == 3
        assert req.images == ["https://cdn/a.png"]
        assert req.budget_estimate is None

    def test_strips_title(self) -> None:
        req = CreateOrderRequest(**_valid_create(title="  Leaking pipe  "))
        assert req.title == "Leaking pipe"

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(**_valid_create(title="   "))

    def test_location_may_be_omitted(self) -> None:
        body = _valid_create()
        del body["lat"], body["lng"]
        req = CreateOrderRequest(**body)
        assert req.lat is None
        assert req.lng is None

    def test_out_of_range_latitude_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(**_valid_create(lat=91.0))

    def test_out_of_range_longitude_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(**_valid_create(lng=-181.0))

    def test_category_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(**_valid_create(category_id=0))

    def test_too_many_images_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(**_valid_create(images=[f"u{i}" for i in range(11)]))


class TestSubmitPostulationRequest:
    def test_empty_body_is_valid(self) -> None:
        req = SubmitPostulationRequest()
        assert req.message is None
        assert req.budget is None

    def test_budget_parsed_as_decimal(self) -> None:
        req = SubmitPostulationRequest(budget="1500.50")
        assert req.budget == Decimal("1500.50")

    def test_negative_budget_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SubmitPostulationRequest(budget=-1)


class TestAcceptPostulationRequest:
    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AcceptPostulationRequest(postulation_id="")


class TestResponses:
    def test_order_response_from_domain(self) -> None:
        resp = OrderResponse.from_domain(_make_order())
        assert resp.id == "ord-1"
        assert resp.status == "PENDING"
        assert resp.images == []

    def test_available_job_rounds_distance(self) -> None:
        resp = AvailableJobResponse.from_nearby(
            NearbyOrder(order=_make_order(), distance_km=1.23456)
        )
        assert resp.distance_km == 1.23
        assert resp.title == "Leaking pipe"

    def test_accept_response_from_result(self) -> None:
        resp = AcceptPostulationResponse.from_result(
            AcceptanceResult(order=_make_order(), conversation_id="conv-1", replayed=True)
        )
        assert resp.conversation_id == "conv-1"
        assert resp.replayed is True
        assert resp.order.id == "ord-1"
