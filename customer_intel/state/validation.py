"""Field rules shared by the create and update paths."""

import re

from email_validator import EmailNotValidError, validate_email

from customer_intel.errors import InvalidCustomerError
from customer_intel.models.customer import SubscriptionTier

MAX_NAME_LENGTH = 100
MAX_COMPANY_LENGTH = 100
MAX_EMAIL_LENGTH = 254
MAX_DOMAIN_LENGTH = 253
MAX_DOMAINS = 10
MAX_LABEL_LENGTH = 63

MIN_HEALTH_SCORE = 0
MAX_HEALTH_SCORE = 100

DOMAIN_LABEL_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
TOP_LEVEL_PATTERN = re.compile(r"^[a-z]{2,63}$")


def require_id(customer_id: str | None) -> str:
    """Return the stripped id, rejecting a missing or blank one."""
    if customer_id is None or not str(customer_id).strip():
        raise InvalidCustomerError(
            "Customer ID is required", reason="INVALID_ID", field="id"
        )
    return str(customer_id).strip()


def _validate_text(
    value: str | None,
    field: str,
    label: str,
    max_length: int,
    *,
    updating: bool,
) -> str:
    if value is None or not value.strip():
        if updating:
            raise InvalidCustomerError(
                f"{label} cannot be empty", reason=f"EMPTY_{field.upper()}", field=field
            )
        raise InvalidCustomerError(
            f"{label} is required", reason=f"MISSING_{field.upper()}", field=field
        )

    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise InvalidCustomerError(
            f"{label} must be {max_length} characters or less",
            reason=f"{field.upper()}_TOO_LONG",
            field=field,
        )
    return cleaned


def validate_name(value: str | None, *, updating: bool = False) -> str:
    """Trimmed customer name, 1-100 characters."""
    return _validate_text(value, "name", "Customer name", MAX_NAME_LENGTH, updating=updating)


def validate_company(value: str | None, *, updating: bool = False) -> str:
    """Trimmed company name, 1-100 characters."""
    return _validate_text(
        value, "company", "Company name", MAX_COMPANY_LENGTH, updating=updating
    )


def validate_email_address(value: str | None) -> str | None:
    """
    Normalize an optional email address.

    Blank values mean "no email" and return None. Anything else must be a
    syntactically valid address of at most 254 characters; it is returned
    trimmed and lowercased.
    """
    if value is None or not value.strip():
        return None

    cleaned = value.strip().lower()
    if len(cleaned) > MAX_EMAIL_LENGTH:
        raise InvalidCustomerError(
            "Email address is too long", reason="EMAIL_TOO_LONG", field="email"
        )

    try:
        validated = validate_email(cleaned, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidCustomerError(
            f"Invalid email format: {e}", reason="INVALID_EMAIL", field="email"
        ) from e

    # Unicode-normalized form, the same value EmailStr stores
    return validated.normalized.lower()


def is_valid_domain(domain: str) -> bool:
    """Check DNS name syntax: dot-separated labels and an alphabetic TLD."""
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        return False

    labels = domain.split(".")
    if len(labels) < 2:
        return False

    for label in labels:
        if len(label) > MAX_LABEL_LENGTH or not DOMAIN_LABEL_PATTERN.match(label):
            return False

    return bool(TOP_LEVEL_PATTERN.match(labels[-1]))


def validate_domains(domains: list[str] | None) -> list[str]:
    """Trimmed, lowercased, de-duplication-checked list of at most 10 domains."""
    if domains is None:
        return []

    if len(domains) > MAX_DOMAINS:
        raise InvalidCustomerError(
            f"Maximum {MAX_DOMAINS} domains allowed per customer",
            reason="TOO_MANY_DOMAINS",
            field="domains",
        )

    cleaned: list[str] = []
    for index, domain in enumerate(domains):
        candidate = domain.strip().lower() if isinstance(domain, str) else ""
        if not is_valid_domain(candidate):
            raise InvalidCustomerError(
                f"Invalid domain format at index {index}: {domain}",
                reason="INVALID_DOMAIN",
                field="domains",
            )
        if candidate in cleaned:
            raise InvalidCustomerError(
                f"Duplicate domain at index {index}: {domain}",
                reason="DUPLICATE_DOMAIN",
                field="domains",
            )
        cleaned.append(candidate)

    return cleaned


def validate_tier(tier: SubscriptionTier | str | None) -> SubscriptionTier:
    """Coerce a tier name, rejecting unknown values."""
    if isinstance(tier, SubscriptionTier):
        return tier
    try:
        return SubscriptionTier(tier)
    except ValueError as e:
        raise InvalidCustomerError(
            "Invalid subscription tier. Must be basic, premium, or enterprise",
            reason="INVALID_TIER",
            field="subscriptionTier",
        ) from e


def validate_health_score(score: int | None) -> int:
    """Explicit health score, an integer in [0, 100]."""
    if (
        score is None
        or isinstance(score, bool)
        or not isinstance(score, int)
        or not MIN_HEALTH_SCORE <= score <= MAX_HEALTH_SCORE
    ):
        raise InvalidCustomerError(
            "Health score must be a number between 0 and 100",
            reason="INVALID_HEALTH_SCORE",
            field="healthScore",
        )
    return score


def validate_score_range(min_score: int, max_score: int) -> None:
    """Bounds must lie within [0, 100] with min <= max."""
    if (
        min_score < MIN_HEALTH_SCORE
        or max_score > MAX_HEALTH_SCORE
        or min_score > max_score
    ):
        raise InvalidCustomerError(
            "Invalid health score range. Must be 0-100 with min <= max",
            reason="INVALID_RANGE",
            field="healthScore",
        )
