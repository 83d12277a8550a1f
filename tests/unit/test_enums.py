"""Tests for hs_common.enums: values must match DB CHECK constraints."""

from src.hs_common.enums import (
    DeliveryStatus,
    OrderStatus,
    PostulationStatus,
    ProviderStatus,
    UserRole,
)


class TestAllEnumsAreStr:
    """All enums inherit from (str, Enum) for JSON serialization."""

    def test_order_status_is_str(self) -> None:
        assert isinstance(OrderStatus.PENDING, str)
        assert OrderStatus.PENDING == "PENDING"

    def test_delivery_status_is_str(self) -> None:
        assert DeliveryStatus.SENT == "sent"


class TestOrderStatus:
    def test_all_values(self) -> None:
        expected = {"PENDING", "MATCHED", "IN_PROGRESS", "COMPLETED", "CANCELLED"}
        assert {s.value for s in OrderStatus} == expected


class TestPostulationStatus:
    def test_all_values(self) -> None:
        assert {s.value for s in PostulationStatus} == {"SENT", "ACCEPTED", "REJECTED"}


class TestProviderStatus:
    def test_all_values(self) -> None:
        assert {s.value for s in ProviderStatus} == {"active", "paused", "suspended"}


class TestUserRole:
    def test_all_values(self) -> None:
        assert {r.value for r in UserRole} == {"client", "provider", "admin"}


class TestDeliveryStatus:
    def test_all_values(self) -> None:
        assert {s.value for s in DeliveryStatus} == {"pending", "sent", "delivered", "read"}

    def test_ranks_are_ordered(self) -> None:
        ranks = [s.rank for s in (
            DeliveryStatus.PENDING,
            DeliveryStatus.SENT,
            DeliveryStatus.DELIVERED,
            DeliveryStatus.READ,
        )]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_sent_can_advance_to_delivered(self) -> None:
        assert DeliveryStatus.SENT.can_advance_to(DeliveryStatus.DELIVERED)

    def test_read_never_regresses(self) -> None:
        assert not DeliveryStatus.READ.can_advance_to(DeliveryStatus.DELIVERED)
        assert not DeliveryStatus.READ.can_advance_to(DeliveryStatus.SENT)

    def test_same_status_is_not_an_advance(self) -> None:
        assert not DeliveryStatus.DELIVERED.can_advance_to(DeliveryStatus.DELIVERED)
