"""Order and Postulation domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.hs_common.enums import OrderStatus, PostulationStatus

# States from which a client may accept a postulation
ACCEPTABLE_STATES = frozenset({OrderStatus.PENDING.value, OrderStatus.MATCHED.value})
# States in which providers may still postulate
OPEN_STATES = ACCEPTABLE_STATES
# winner_provider_id is set exactly in these states
WINNER_STATES = frozenset({OrderStatus.IN_PROGRESS.value, OrderStatus.COMPLETED.value})


@dataclass
class Order:
    id: str
    client_id: str
    category_id: int
    title: str
    description: str
    lat: float
    lng: float
    status: str = OrderStatus.PENDING.value
    images: list[str] = field(default_factory=list)
    budget_estimate: str | None = None
    winner_provider_id: str | None = None
    final_agreed_price: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_acceptable(self) -> bool:
        return self.status in ACCEPTABLE_STATES

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATES

    def is_owned_by(self, user_id: str) -> bool:
        return self.client_id == user_id


@dataclass
class Postulation:
    id: str
    order_id: str
    provider_id: str
    status: str = PostulationStatus.SENT.value
    message: str | None = None
    budget: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class AcceptanceResult:
    order: Order
    conversation_id: str
    replayed: bool = False
