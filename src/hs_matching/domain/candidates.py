"""Radius filtering between orders and providers."""
from dataclasses import dataclass

from src.hs_common.geo import distance_km
from src.hs_order.domain.models import Order
from src.hs_provider.domain.models import Provider


@dataclass(frozen=True)
class CandidateMatch:
    provider_id: str
    user_id: str
    distance_km: float


@dataclass(frozen=True)
class NearbyOrder:
    order: Order
    distance_km: float


def find_candidate_providers(
    order: Order, providers: list[Provider], radius_km: float
) -> list[CandidateMatch]:
    """Active providers sharing the order's category within `radius_km`, nearest first.

    Providers without coordinates are skipped. Category and status are
    re-checked here even though the repository query already filters them.
    """
    matches: list[CandidateMatch] = []
    for provider in providers:
        if not provider.is_active or provider.lat is None or provider.lng is None:
            continue
        if order.category_id not in provider.all_category_ids:
            continue
        dist = distance_km(order.lat, order.lng, provider.lat, provider.lng)
        if dist <= radius_km:
            matches.append(
                CandidateMatch(provider_id=provider.id, user_id=provider.user_id, distance_km=dist)
            )
    matches.sort(key=lambda m: m.distance_km)
    return matches


def orders_within_radius(
    provider: Provider, orders: list[Order], radius_km: float
) -> list[NearbyOrder]:
    """Keep orders within `radius_km` of the provider, preserving input order."""
    lat, lng = provider.lat, provider.lng
    if lat is None or lng is None:
        return []
    nearby: list[NearbyOrder] = []
    for order in orders:
        dist = distance_km(order.lat, order.lng, lat, lng)
        if dist <= radius_km:
            nearby.append(NearbyOrder(order=order, distance_km=dist))
    return nearby
