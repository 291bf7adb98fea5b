"""Customer-related models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model exchanged over the API with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict using camelCase names."""
        return self.model_dump(mode="json", by_alias=True)


class SubscriptionTier(str, Enum):
    """Subscription levels."""

    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class Customer(CamelModel):
    """Customer record owned by the repository."""

    id: str
    name: str = Field(min_length=1, max_length=100)
    company: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    domains: list[str] = Field(default_factory=list, max_length=10)
    health_score: int = Field(ge=0, le=100)
    created_at: AwareDatetime = Field(default_factory=utc_now)
    updated_at: AwareDatetime = Field(default_factory=utc_now)


class CustomerCreate(CamelModel):
    """Input accepted when creating a customer."""

    name: str
    company: str
    email: str | None = None
    subscription_tier: SubscriptionTier | None = None
    domains: list[str] | None = None


class CustomerUpdate(CamelModel):
    """Partial update; only fields explicitly provided are applied."""

    name: str | None = None
    company: str | None = None
    email: str | None = None
    subscription_tier: SubscriptionTier | None = None
    domains: list[str] | None = None
    health_score: int | None = None

    @property
    def provided_fields(self) -> set[str]:
        """Names of the fields present in the patch."""
        return set(self.model_fields_set)


class CustomerFilters(CamelModel):
    """Conjunctive filters applied when listing customers."""

    subscription_tier: SubscriptionTier | None = None
    health_score_min: int | None = None
    health_score_max: int | None = None
    company: str | None = None
    search_term: str | None = None


class PaginationOptions(CamelModel):
    """Page selection and ordering for customer listings."""

    page: int = 1
    limit: int = 10
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] = "asc"


class PaginationMetadata(CamelModel):
    """Position of a page within the filtered listing."""

    page: int
    limit: int
    total: int
    total_pages: int


class PaginatedResult(CamelModel):
    """One page of customers plus pagination metadata."""

    data: list[Customer]
    pagination: PaginationMetadata


class TierCounts(CamelModel):
    """Number of customers per subscription tier."""

    basic: int = 0
    premium: int = 0
    enterprise: int = 0


class HealthDistribution(CamelModel):
    """Number of customers per health band."""

    healthy: int = 0
    warning: int = 0
    critical: int = 0


class CustomerStats(CamelModel):
    """Aggregate statistics over the whole collection."""

    total: int
    by_tier: TierCounts
    average_health_score: int
    health_distribution: HealthDistribution
