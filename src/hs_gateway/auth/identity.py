"""Capability-tagged caller identity.

Resolved once at the auth boundary and passed explicitly into every service
operation, so handlers branch on the identity type instead of re-querying
whether the caller owns a provider profile.
"""
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class ClientIdentity:
    user_id: str
    is_admin: bool = False


@dataclass(frozen=True)
class ProviderIdentity:
    user_id: str
    provider_id: str
    is_admin: bool = False


Identity = Union[ClientIdentity, ProviderIdentity]


def provider_id_of(identity: Identity) -> str | None:
    return identity.provider_id if isinstance(identity, ProviderIdentity) else None
