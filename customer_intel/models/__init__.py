"""Data models for the customer intelligence API."""

from customer_intel.models.api import ApiResponse, ServiceResult
from customer_intel.models.customer import (
    Customer,
    CustomerCreate,
    CustomerFilters,
    CustomerStats,
    CustomerUpdate,
    HealthDistribution,
    PaginatedResult,
    PaginationMetadata,
    PaginationOptions,
    SubscriptionTier,
    TierCounts,
)

__all__ = [
    # API
    "ApiResponse",
    "ServiceResult",
    # Customer
    "Customer",
    "CustomerCreate",
    "CustomerUpdate",
    "SubscriptionTier",
    # Listing
    "CustomerFilters",
    "PaginationOptions",
    "PaginationMetadata",
    "PaginatedResult",
    # Statistics
    "CustomerStats",
    "TierCounts",
    "HealthDistribution",
]
