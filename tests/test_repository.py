"""Tests for the customer repository."""

import asyncio
from datetime import datetime

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from customer_intel.errors import ErrorCode
from customer_intel.models.customer import (
    Customer,
    CustomerCreate,
    CustomerFilters,
    CustomerUpdate,
    PaginationOptions,
    SubscriptionTier,
)
from customer_intel.state import customers as customers_module
from customer_intel.state.customers import CustomerRepository

from conftest import FIXED_NOW, ManualClock


def ids(customers: list) -> list[str]:
    return [customer.id for customer in customers]


# Creation


@pytest.mark.asyncio
async def test_create_scores_new_customer(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    """Test that a premium customer with a domain and an email scores 80."""
    result = await repository.create(jane_doe)

    assert result.success is True
    customer = result.data
    assert customer.id == "9"
    assert customer.health_score == 80
    assert customer.subscription_tier == SubscriptionTier.PREMIUM
    assert customer.created_at == customer.updated_at == FIXED_NOW


@pytest.mark.asyncio
async def test_create_then_get_returns_record(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    created = await repository.create(jane_doe)
    fetched = await repository.get_by_id(created.data.id)

    assert fetched.success is True
    assert fetched.data == created.data


@pytest.mark.asyncio
async def test_create_normalizes_fields(empty_repository: CustomerRepository) -> None:
    result = await empty_repository.create(
        {
            "name": "  Jane Doe ",
            "company": " Doe Industries ",
            "email": " Jane@DoeIndustries.com ",
            "domains": [" DoeIndustries.com "],
        }
    )

    customer = result.data
    assert customer.id == "1"
    assert customer.name == "Jane Doe"
    assert customer.company == "Doe Industries"
    assert customer.email == "jane@doeindustries.com"
    assert customer.domains == ["doeindustries.com"]


@pytest.mark.asyncio
async def test_create_without_tier_defaults_to_basic(
    empty_repository: CustomerRepository,
) -> None:
    """Test that an omitted tier is stored as basic but earns no tier bonus."""
    result = await empty_repository.create(
        CustomerCreate(name="Solo", company="Solo LLC")
    )

    assert result.data.subscription_tier == SubscriptionTier.BASIC
    assert result.data.domains == []
    assert result.data.email is None
    assert result.data.health_score == 50


@pytest.mark.asyncio
async def test_create_invalid_email(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    jane_doe.email = "not-an-email"

    result = await repository.create(jane_doe)

    assert result.success is False
    assert result.code == ErrorCode.VALIDATION_ERROR
    assert result.reason == "INVALID_EMAIL"
    assert len(await repository.snapshot()) == 8


@pytest.mark.asyncio
async def test_create_duplicate_email_is_case_insensitive(
    repository: CustomerRepository,
) -> None:
    """Test that an existing email in different case is rejected."""
    before = await repository.snapshot()

    result = await repository.create(
        CustomerCreate(name="Impostor", company="Acme", email="JOHN.SMITH@ACMECORP.COM")
    )

    assert result.success is False
    assert result.code == ErrorCode.DUPLICATE_ERROR
    assert result.field == "email"
    assert await repository.snapshot() == before


@pytest.mark.asyncio
async def test_create_rejects_unknown_tier_mapping(
    repository: CustomerRepository,
) -> None:
    result = await repository.create(
        {"name": "Jane", "company": "Doe", "subscriptionTier": "gold"}
    )

    assert result.success is False
    assert result.reason == "INVALID_TIER"


@pytest.mark.asyncio
async def test_create_missing_company(repository: CustomerRepository) -> None:
    result = await repository.create(CustomerCreate(name="Jane", company="  "))

    assert result.success is False
    assert result.reason == "MISSING_COMPANY"


@pytest.mark.asyncio
async def test_ids_are_never_reused(repository: CustomerRepository) -> None:
    """Test that deleting the newest customer does not free its id."""
    first = await repository.create(CustomerCreate(name="A", company="A Co"))
    await repository.delete(first.data.id)
    second = await repository.create(CustomerCreate(name="B", company="B Co"))

    assert first.data.id == "9"
    assert second.data.id == "10"


@pytest.mark.asyncio
async def test_concurrent_duplicate_creates(empty_repository: CustomerRepository) -> None:
    """Test that only one of two simultaneous creates with one email succeeds."""
    payload = CustomerCreate(name="Twin", company="Twins", email="twin@twins.com")

    results = await asyncio.gather(
        empty_repository.create(payload),
        empty_repository.create(payload),
    )

    assert sorted(result.success for result in results) == [False, True]
    assert len(await empty_repository.snapshot()) == 1


# Lookup and deletion


@pytest.mark.asyncio
async def test_get_unknown_customer(repository: CustomerRepository) -> None:
    result = await repository.get_by_id("999")

    assert result.success is False
    assert result.code == ErrorCode.NOT_FOUND
    assert result.error == "Customer with ID '999' not found"


@pytest.mark.asyncio
async def test_get_blank_id(repository: CustomerRepository) -> None:
    result = await repository.get_by_id("")

    assert result.code == ErrorCode.VALIDATION_ERROR
    assert result.reason == "INVALID_ID"


@pytest.mark.asyncio
async def test_delete_then_get(repository: CustomerRepository) -> None:
    """Test that a deleted customer is gone and cannot be deleted again."""
    deleted = await repository.delete("3")
    fetched = await repository.get_by_id("3")
    again = await repository.delete("3")

    assert deleted.success is True
    assert deleted.data is True
    assert fetched.code == ErrorCode.NOT_FOUND
    assert again.code == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_returned_records_are_copies(repository: CustomerRepository) -> None:
    """Test that mutating a result does not touch the stored record."""
    result = await repository.get_by_id("1")
    result.data.name = "Changed"
    result.data.domains.append("evil.com")

    stored = await repository.get_by_id("1")

    assert stored.data.name == "John Smith"
    assert "evil.com" not in stored.data.domains


# Updates


@pytest.mark.asyncio
async def test_upgrade_recomputes_score(
    repository: CustomerRepository, jane_doe: CustomerCreate, clock: ManualClock
) -> None:
    """Test that moving to enterprise rescores the customer and refreshes updatedAt."""
    created = await repository.create(jane_doe)
    clock.advance(minutes=5)

    result = await repository.update(
        created.data.id, CustomerUpdate(subscription_tier=SubscriptionTier.ENTERPRISE)
    )

    assert result.success is True
    assert result.data.health_score == 95
    assert result.data.updated_at > created.data.updated_at
    assert result.data.created_at == created.data.created_at


@pytest.mark.asyncio
async def test_recompute_includes_account_age(repository: CustomerRepository) -> None:
    """Test that recomputed scores include a point per ten days of age."""
    # Customer 5 is 104 days old at the fixed clock: 50 + 15 + 0 + 10 + 10.4
    result = await repository.update("5", {"subscriptionTier": "premium"})

    assert result.data.health_score == 85


@pytest.mark.asyncio
async def test_recomputed_score_wins_over_explicit_score(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    created = await repository.create(jane_doe)

    result = await repository.update(
        created.data.id,
        CustomerUpdate(subscription_tier=SubscriptionTier.ENTERPRISE, health_score=10),
    )

    assert result.data.health_score == 95


@pytest.mark.asyncio
async def test_explicit_score_applies_alone(repository: CustomerRepository) -> None:
    result = await repository.update("2", CustomerUpdate(health_score=10))

    assert result.data.health_score == 10


@pytest.mark.asyncio
async def test_domain_change_recomputes_score(repository: CustomerRepository) -> None:
    # Customer 3 is older than 150 days so the age bonus is capped
    result = await repository.update("3", {"domains": []})

    assert result.data.domains == []
    assert result.data.health_score == 100


@pytest.mark.asyncio
async def test_name_change_keeps_score(repository: CustomerRepository) -> None:
    result = await repository.update("4", {"name": " Emily D. "})

    assert result.data.name == "Emily D."
    assert result.data.health_score == 67
    assert result.data.updated_at == FIXED_NOW


@pytest.mark.asyncio
async def test_update_with_blank_name(repository: CustomerRepository) -> None:
    result = await repository.update("1", {"name": "  "})

    assert result.success is False
    assert result.reason == "EMPTY_NAME"


@pytest.mark.asyncio
async def test_update_clears_email(repository: CustomerRepository) -> None:
    """Test that an explicit null or empty email removes the address."""
    cleared = await repository.update("1", {"email": None})
    emptied = await repository.update("2", {"email": ""})

    assert cleared.data.email is None
    assert emptied.data.email is None


@pytest.mark.asyncio
async def test_update_duplicate_email(repository: CustomerRepository) -> None:
    before = await repository.snapshot()

    result = await repository.update("2", {"email": "John.Smith@AcmeCorp.com"})

    assert result.code == ErrorCode.DUPLICATE_ERROR
    assert await repository.snapshot() == before


@pytest.mark.asyncio
async def test_update_keeps_own_email(repository: CustomerRepository) -> None:
    result = await repository.update("1", {"email": "JOHN.SMITH@acmecorp.com"})

    assert result.success is True
    assert result.data.email == "john.smith@acmecorp.com"


@pytest.mark.asyncio
async def test_update_null_domains(repository: CustomerRepository) -> None:
    result = await repository.update("1", {"domains": None})

    assert result.success is False
    assert result.reason == "INVALID_DOMAINS_FORMAT"


@pytest.mark.asyncio
async def test_update_invalid_health_score(repository: CustomerRepository) -> None:
    result = await repository.update("1", {"healthScore": 150})

    assert result.success is False
    assert result.reason == "INVALID_HEALTH_SCORE"


@pytest.mark.asyncio
async def test_update_unknown_customer(repository: CustomerRepository) -> None:
    """Test that a missing customer is reported before the patch is checked."""
    result = await repository.update("999", {"name": ""})

    assert result.code == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
async def test_failed_update_leaves_collection_unchanged(
    repository: CustomerRepository,
) -> None:
    before = await repository.snapshot()

    result = await repository.update(
        "1", {"name": "Renamed", "domains": ["ok.com", "not a domain"]}
    )

    assert result.success is False
    assert await repository.snapshot() == before


@pytest.mark.asyncio
async def test_empty_patch_refreshes_timestamp(repository: CustomerRepository) -> None:
    result = await repository.update("1", CustomerUpdate())

    assert result.success is True
    assert result.data.updated_at == FIXED_NOW
    assert result.data.health_score == 85


# Queries


@pytest.mark.asyncio
async def test_search(repository: CustomerRepository) -> None:
    result = await repository.search("john")

    assert ids(result.data) == ["1", "2"]


@pytest.mark.asyncio
async def test_search_matches_company_and_email(repository: CustomerRepository) -> None:
    by_company = await repository.search("LOGISTICS")
    by_email = await repository.search("financefirst.com")

    assert ids(by_company.data) == ["3"]
    assert ids(by_email.data) == ["8"]


@pytest.mark.asyncio
@pytest.mark.parametrize("term", ["", "   ", None])
async def test_blank_search_returns_nothing(
    repository: CustomerRepository, term: str | None
) -> None:
    result = await repository.search(term)

    assert result.success is True
    assert result.data == []


@pytest.mark.asyncio
async def test_by_health_score_range(repository: CustomerRepository) -> None:
    result = await repository.by_health_score_range(50, 80)

    assert ids(result.data) == ["4", "6", "8"]


@pytest.mark.asyncio
async def test_by_health_score_range_defaults(repository: CustomerRepository) -> None:
    result = await repository.by_health_score_range()

    assert len(result.data) == 8


@pytest.mark.asyncio
async def test_inverted_health_score_range(repository: CustomerRepository) -> None:
    result = await repository.by_health_score_range(80, 20)

    assert result.code == ErrorCode.VALIDATION_ERROR
    assert result.reason == "INVALID_RANGE"


@pytest.mark.asyncio
async def test_by_tier(repository: CustomerRepository) -> None:
    enterprise = await repository.by_tier(SubscriptionTier.ENTERPRISE)
    basic = await repository.by_tier("basic")
    unknown = await repository.by_tier("gold")

    assert ids(enterprise.data) == ["3", "6"]
    assert ids(basic.data) == ["2", "5", "7"]
    assert unknown.reason == "INVALID_TIER"


@pytest.mark.asyncio
async def test_stats(repository: CustomerRepository) -> None:
    result = await repository.stats()

    stats = result.data
    assert stats.total == 8
    assert stats.by_tier.model_dump() == {"basic": 3, "premium": 3, "enterprise": 2}
    assert stats.health_distribution.model_dump() == {
        "healthy": 3,
        "warning": 3,
        "critical": 2,
    }
    assert stats.average_health_score == 58


@pytest.mark.asyncio
async def test_stats_counts_sum_to_total(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    await repository.create(jane_doe)
    await repository.delete("7")

    stats = (await repository.stats()).data

    assert stats.total == 8
    assert sum(stats.by_tier.model_dump().values()) == stats.total
    assert sum(stats.health_distribution.model_dump().values()) == stats.total


@pytest.mark.asyncio
async def test_stats_of_empty_repository(empty_repository: CustomerRepository) -> None:
    stats = (await empty_repository.stats()).data

    assert stats.total == 0
    assert stats.average_health_score == 0


# Listing


@pytest.mark.asyncio
async def test_list_first_page(repository: CustomerRepository) -> None:
    result = await repository.list_customers(
        CustomerFilters(), PaginationOptions(page=1, limit=5)
    )

    listing = result.data
    assert ids(listing.data) == ["1", "2", "3", "4", "5"]
    assert listing.pagination.total == 8
    assert listing.pagination.total_pages == 2


@pytest.mark.asyncio
async def test_list_defaults(repository: CustomerRepository) -> None:
    listing = (await repository.list_customers()).data

    assert len(listing.data) == 8
    assert listing.pagination.page == 1
    assert listing.pagination.limit == 10
    assert listing.pagination.total_pages == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 3, 5, 8, 20])
async def test_pages_cover_sorted_listing_once(
    repository: CustomerRepository, limit: int
) -> None:
    """Test that concatenated pages reproduce the full sorted listing."""
    full = await repository.list_customers(
        None, PaginationOptions(limit=100, sort_by="healthScore", sort_order="desc")
    )

    collected: list[str] = []
    page = 1
    while True:
        result = await repository.list_customers(
            None,
            PaginationOptions(
                page=page, limit=limit, sort_by="healthScore", sort_order="desc"
            ),
        )
        assert len(result.data.data) <= limit
        if not result.data.data:
            break
        collected.extend(ids(result.data.data))
        page += 1

    assert collected == ids(full.data.data)
    assert page - 1 == result.data.pagination.total_pages


@pytest.mark.asyncio
async def test_list_filters_combine(repository: CustomerRepository) -> None:
    result = await repository.list_customers(
        {"subscriptionTier": "premium", "healthScoreMin": 60}
    )

    assert ids(result.data.data) == ["1", "4"]
    assert result.data.pagination.total == 2


@pytest.mark.asyncio
async def test_list_company_and_search_filters(repository: CustomerRepository) -> None:
    by_company = await repository.list_customers(CustomerFilters(company="corp"))
    by_term = await repository.list_customers(CustomerFilters(search_term="JOHN"))

    assert ids(by_company.data.data) == ["1"]
    assert ids(by_term.data.data) == ["1", "2"]


@pytest.mark.asyncio
async def test_list_sort_by_name(repository: CustomerRepository) -> None:
    result = await repository.list_customers(
        None, PaginationOptions(limit=3, sort_by="name")
    )

    assert [c.name for c in result.data.data] == [
        "David Martinez",
        "Emily Davis",
        "Jennifer Taylor",
    ]


@pytest.mark.asyncio
async def test_list_sort_ids_numerically(repository: CustomerRepository) -> None:
    for index in range(3):
        await repository.create(CustomerCreate(name=f"New {index}", company="New Co"))

    result = await repository.list_customers(
        None, PaginationOptions(limit=3, sort_by="id", sort_order="desc")
    )

    assert ids(result.data.data) == ["11", "10", "9"]


@pytest.mark.asyncio
async def test_list_sort_puts_missing_email_first(repository: CustomerRepository) -> None:
    result = await repository.list_customers(
        None, PaginationOptions(limit=1, sort_by="email")
    )

    assert ids(result.data.data) == ["7"]


@pytest.mark.asyncio
async def test_list_snake_case_sort_field(repository: CustomerRepository) -> None:
    result = await repository.list_customers(
        None, PaginationOptions(limit=1, sort_by="health_score")
    )

    assert ids(result.data.data) == ["7"]


@pytest.mark.asyncio
async def test_list_unknown_sort_field(repository: CustomerRepository) -> None:
    result = await repository.list_customers(None, PaginationOptions(sort_by="password"))

    assert result.code == ErrorCode.VALIDATION_ERROR
    assert result.reason == "INVALID_SORT_FIELD"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("options", "reason"),
    [({"page": 0}, "INVALID_PAGE"), ({"limit": 0}, "INVALID_LIMIT")],
)
async def test_list_rejects_bad_pagination(
    repository: CustomerRepository, options: dict, reason: str
) -> None:
    result = await repository.list_customers(None, options)

    assert result.reason == reason


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty(repository: CustomerRepository) -> None:
    result = await repository.list_customers(None, PaginationOptions(page=5, limit=5))

    assert result.data.data == []
    assert result.data.pagination.total == 8


# Maintenance and failure handling


@pytest.mark.asyncio
async def test_reset_restores_seed(
    repository: CustomerRepository, jane_doe: CustomerCreate
) -> None:
    await repository.create(jane_doe)
    await repository.delete("1")

    result = await repository.reset()
    created = await repository.create(CustomerCreate(name="After", company="Reset"))

    assert result.data == 8
    assert (await repository.get_by_id("1")).success is True
    assert created.data.id == "9"


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(
    repository: CustomerRepository,
    jane_doe: CustomerCreate,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that an unexpected failure becomes an internal error result."""

    def explode(*args, **kwargs):
        raise RuntimeError("scoring backend unavailable")

    monkeypatch.setattr(customers_module, "calculate_health_score", explode)

    result = await repository.create(jane_doe)

    assert result.success is False
    assert result.code == ErrorCode.INTERNAL_ERROR
    assert result.error == "An internal error occurred"
    assert len(await repository.snapshot()) == 8


@pytest.mark.asyncio
async def test_duplicate_email_across_unicode_forms(
    empty_repository: CustomerRepository,
) -> None:
    """Test that composed and decomposed spellings of one address collide."""
    composed = await empty_repository.create(
        {"name": "Cafe", "company": "Cafe Co", "email": "caf\u00e9@cafeco.org"}
    )
    decomposed = await empty_repository.create(
        {"name": "Cafe Twin", "company": "Cafe Co", "email": "cafe\u0301@cafeco.org"}
    )

    assert composed.success is True
    assert composed.data.email == "caf\u00e9@cafeco.org"
    assert decomposed.success is False
    assert decomposed.code == ErrorCode.DUPLICATE_ERROR
    assert len(await empty_repository.snapshot()) == 1


@pytest.mark.asyncio
async def test_duplicate_failure_log_hides_address(clock: ManualClock) -> None:
    """Test that a rejected duplicate never logs the address itself."""
    with capture_logs() as logs:
        repository = CustomerRepository.with_seed_data(clock=clock)
        result = await repository.create(
            CustomerCreate(name="Impostor", company="Acme", email="john.smith@acmecorp.com")
        )

    assert result.code == ErrorCode.DUPLICATE_ERROR
    failures = [entry for entry in logs if entry["event"] == "repository_failure"]
    assert len(failures) == 1
    assert failures[0]["email"] == "***"
    assert all("john.smith@acmecorp.com" not in str(value) for value in failures[0].values())


def test_customer_requires_aware_timestamps() -> None:
    """Test that naive timestamps are rejected when records are built."""
    with pytest.raises(ValidationError):
        Customer(
            id="1",
            name="Naive",
            company="Naive Co",
            health_score=50,
            created_at=datetime(2024, 1, 1, 9, 0),
        )
