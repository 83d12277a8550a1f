# src/hs_order/application/schemas.py
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.hs_matching.domain.candidates import NearbyOrder
from src.hs_order.domain.models import AcceptanceResult, Order, Postulation


class CreateOrderRequest(BaseModel):
    category_id: int = Field(gt=0)
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    # Optional here so a missing location gets its own error code
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    images: list[str] = Field(default_factory=list, max_length=10)
    budget_estimate: str | None = Field(None, max_length=100)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class SubmitPostulationRequest(BaseModel):
    message: str | None = None
    budget: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)


class AcceptPostulationRequest(BaseModel):
    postulation_id: str = Field(min_length=1)


class PostulationResponse(BaseModel):
    id: str
    order_id: str
    provider_id: str
    status: str
    message: str | None = None
    budget: Decimal | None = None
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, p: Postulation) -> "PostulationResponse":
        return cls(
            id=p.id,
            order_id=p.order_id,
            provider_id=p.provider_id,
            status=p.status,
            message=p.message,
            budget=p.budget,
            created_at=p.created_at,
        )


class OrderResponse(BaseModel):
    id: str
    client_id: str
    category_id: int
    title: str
    description: str
    lat: float
    lng: float
    status: str
    images: list[str]
    budget_estimate: str | None = None
    winner_provider_id: str | None = None
    final_agreed_price: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, o: Order) -> "OrderResponse":
        return cls(
            id=o.id,
            client_id=o.client_id,
            category_id=o.category_id,
            title=o.title,
            description=o.description,
            lat=o.lat,
            lng=o.lng,
            status=o.status,
            images=o.images,
            budget_estimate=o.budget_estimate,
            winner_provider_id=o.winner_provider_id,
            final_agreed_price=o.final_agreed_price,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )


class ClientOrderResponse(OrderResponse):
    postulations: list[PostulationResponse] = Field(default_factory=list)


class AvailableJobResponse(OrderResponse):
    distance_km: float

    @classmethod
    def from_nearby(cls, nearby: NearbyOrder) -> "AvailableJobResponse":
        base = OrderResponse.from_domain(nearby.order).model_dump()
        return cls(**base, distance_km=round(nearby.distance_km, 2))


class AcceptPostulationResponse(BaseModel):
    order: OrderResponse
    conversation_id: str
    replayed: bool

    @classmethod
    def from_result(cls, result: AcceptanceResult) -> "AcceptPostulationResponse":
        return cls(
            order=OrderResponse.from_domain(result.order),
            conversation_id=result.conversation_id,
            replayed=result.replayed,
        )


class AdminOrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    limit: int
    offset: int


class OrderStatsResponse(BaseModel):
    resolved_this_month: int
    total_orders: int


class PublicRecentOrder(BaseModel):
    id: str
    category_name: str
    created_at: datetime


class PublicRecentOrdersResponse(BaseModel):
    orders: list[PublicRecentOrder]
