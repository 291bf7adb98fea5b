"""Customer health score calculation."""

import math
from datetime import datetime

from customer_intel.models.customer import SubscriptionTier

BASE_SCORE = 50

TIER_BONUS: dict[SubscriptionTier, int] = {
    SubscriptionTier.ENTERPRISE: 30,
    SubscriptionTier.PREMIUM: 15,
    SubscriptionTier.BASIC: 5,
}

POINTS_PER_DOMAIN = 5
MAX_DOMAIN_BONUS = 20
EMAIL_BONUS = 10
DAYS_PER_AGE_POINT = 10
MAX_AGE_BONUS = 15

HEALTHY_THRESHOLD = 71
CRITICAL_THRESHOLD = 30


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounded up."""
    return math.floor(value + 0.5)


def clamp(value: int, lower: int = 0, upper: int = 100) -> int:
    return min(max(value, lower), upper)


def calculate_health_score(
    tier: SubscriptionTier | None,
    domain_count: int,
    has_email: bool,
    created_at: datetime | None = None,
    now: datetime | None = None,
) -> int:
    """
    Compute a health score in [0, 100].

    The account age bonus only applies when both ``created_at`` and ``now``
    are given; new customers are scored without it.
    """
    score: float = BASE_SCORE
    score += TIER_BONUS.get(tier, 0) if tier is not None else 0
    score += min(domain_count * POINTS_PER_DOMAIN, MAX_DOMAIN_BONUS)

    if has_email:
        score += EMAIL_BONUS

    if created_at is not None and now is not None:
        days_since_creation = (now - created_at).total_seconds() / 86400
        score += min(days_since_creation / DAYS_PER_AGE_POINT, MAX_AGE_BONUS)

    return clamp(round_half_up(score))


def health_band(score: int) -> str:
    """Classify a score as healthy, warning or critical."""
    if score >= HEALTHY_THRESHOLD:
        return "healthy"
    if score <= CRITICAL_THRESHOLD:
        return "critical"
    return "warning"
