"""Provider read model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass, field


@dataclass
class Provider:
    id: str
    user_id: str
    category_id: int  # primary category
    first_name: str
    last_name: str
    status: str = "active"
    lat: float | None = None
    lng: float | None = None
    avatar_url: str | None = None
    emergency_available: bool = False
    # primary + secondary categories (provider_categories)
    category_ids: list[int] = field(default_factory=list)

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def all_category_ids(self) -> list[int]:
        ids = [self.category_id]
        ids.extend(c for c in self.category_ids if c != self.category_id)
        return ids
