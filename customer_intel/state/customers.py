"""In-memory customer repository."""

import asyncio
import math
import time
from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from customer_intel.errors import (
    CustomerNotFoundError,
    CustomerServiceError,
    DuplicateCustomerError,
    ErrorCode,
    InvalidCustomerError,
)
from customer_intel.models.api import ServiceResult
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
    utc_now,
)
from customer_intel.state.scoring import calculate_health_score, health_band, round_half_up
from customer_intel.state.seed import seed_customers
from customer_intel.state.validation import (
    require_id,
    validate_company,
    validate_domains,
    validate_email_address,
    validate_health_score,
    validate_name,
    validate_score_range,
    validate_tier,
)
from customer_intel.utils.logging import ServiceLogger

ModelT = TypeVar("ModelT", bound=BaseModel)

# Sortable fields by wire name; attribute names are accepted as well.
SORT_FIELDS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "company": "company",
    "email": "email",
    "subscriptionTier": "subscription_tier",
    "healthScore": "health_score",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

INTERNAL_ERROR_MESSAGE = "An internal error occurred"

# Reason reported when a raw mapping fails model validation on one field
FIELD_REASONS: dict[str, str] = {
    "name": "INVALID_NAME",
    "company": "INVALID_COMPANY",
    "email": "INVALID_EMAIL",
    "subscriptionTier": "INVALID_TIER",
    "domains": "INVALID_DOMAINS_FORMAT",
    "healthScore": "INVALID_HEALTH_SCORE",
    "page": "INVALID_PAGE",
    "limit": "INVALID_LIMIT",
    "sortOrder": "INVALID_SORT_ORDER",
}


def _resolve_sort_field(sort_by: str) -> str:
    if sort_by in SORT_FIELDS:
        return SORT_FIELDS[sort_by]
    if sort_by in SORT_FIELDS.values():
        return sort_by
    raise InvalidCustomerError(
        f"Cannot sort by '{sort_by}'. Sortable fields: {', '.join(SORT_FIELDS)}",
        reason="INVALID_SORT_FIELD",
        field="sortBy",
    )


def _sort_key(attribute: str) -> Callable[[Customer], tuple[Any, ...]]:
    """Key function ordering missing values first and strings case-insensitively."""

    def key(customer: Customer) -> tuple[Any, ...]:
        value = getattr(customer, attribute)
        if value is None:
            return (0,)
        if attribute == "id":
            return (1, int(value), "") if value.isdigit() else (2, 0, value.casefold())
        if isinstance(value, SubscriptionTier):
            return (1, value.value)
        if isinstance(value, str):
            return (1, value.casefold())
        return (1, value)

    return key


def _matches_term(customer: Customer, term: str) -> bool:
    """Case-insensitive substring match against name, company or email."""
    needle = term.casefold()
    return (
        needle in customer.name.casefold()
        or needle in customer.company.casefold()
        or (customer.email is not None and needle in customer.email.casefold())
    )


def _coerce(model: type[ModelT], payload: ModelT | dict[str, Any]) -> ModelT:
    """Accept either a model instance or a raw mapping of its fields."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first["loc"]
        field = str(loc[0]) if loc else None
        raise InvalidCustomerError(
            f"Invalid value for {field}: {first['msg']}",
            reason=FIELD_REASONS.get(field or "", "INVALID_INPUT"),
            field=field,
        ) from e


class CustomerRepository:
    """
    Owns the customer collection.

    Every public operation runs under a single lock, validates before it
    mutates anything, and returns a ServiceResult instead of raising.
    """

    def __init__(
        self,
        customers: Iterable[Customer] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._initial: list[Customer] = [c.model_copy(deep=True) for c in customers or []]
        self._clock = clock
        self._lock = asyncio.Lock()
        self.logger = ServiceLogger("customer_repository")

        self._customers: list[Customer] = []
        self._next_id = 1
        self._load(self._initial)

    @classmethod
    def with_seed_data(cls, clock: Callable[[], datetime] = utc_now) -> "CustomerRepository":
        """Create a repository preloaded with the sample customers."""
        return cls(seed_customers(), clock=clock)

    def _load(self, customers: list[Customer]) -> None:
        self._customers = [c.model_copy(deep=True) for c in customers]
        numeric_ids = [int(c.id) for c in self._customers if c.id.isdigit()]
        self._next_id = max(numeric_ids, default=0) + 1

    async def _execute(
        self,
        operation: str,
        func: Callable[[], Any],
        **log_fields: Any,
    ) -> ServiceResult:
        """Run ``func`` under the lock and wrap its outcome."""
        self.logger.log_operation(operation, **log_fields)
        start_time = time.perf_counter()

        async with self._lock:
            try:
                data = func()
            except CustomerServiceError as e:
                execution_time_ms = (time.perf_counter() - start_time) * 1000
                self.logger.log_failure(
                    operation,
                    code=e.code.value,
                    error=e.message,
                    reason=e.reason,
                    field=e.field,
                    **log_fields,
                )
                return ServiceResult(
                    operation=operation,
                    success=False,
                    error=e.message,
                    code=e.code,
                    reason=e.reason,
                    field=e.field,
                    execution_time_ms=execution_time_ms,
                )
            except Exception as e:
                execution_time_ms = (time.perf_counter() - start_time) * 1000
                self.logger.log_error(operation, str(e), **log_fields)
                return ServiceResult(
                    operation=operation,
                    success=False,
                    error=INTERNAL_ERROR_MESSAGE,
                    code=ErrorCode.INTERNAL_ERROR,
                    reason=ErrorCode.INTERNAL_ERROR.value,
                    execution_time_ms=execution_time_ms,
                )

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        self.logger.log_success(operation, execution_time_ms, **log_fields)

        return ServiceResult(
            operation=operation,
            success=True,
            data=data,
            execution_time_ms=execution_time_ms,
        )

    # Lookups

    def _index_of(self, customer_id: str) -> int:
        for index, customer in enumerate(self._customers):
            if customer.id == customer_id:
                return index
        raise CustomerNotFoundError(customer_id)

    def _ensure_unique_email(self, email: str | None, exclude_id: str | None = None) -> None:
        if not email:
            return
        for customer in self._customers:
            if customer.id == exclude_id or customer.email is None:
                continue
            if customer.email.casefold() == email.casefold():
                raise DuplicateCustomerError("email", email)

    @staticmethod
    def _copies(customers: Iterable[Customer]) -> list[Customer]:
        return [c.model_copy(deep=True) for c in customers]

    # Queries

    async def list_customers(
        self,
        filters: CustomerFilters | dict[str, Any] | None = None,
        pagination: PaginationOptions | dict[str, Any] | None = None,
    ) -> ServiceResult:
        """Filter, sort, then paginate the collection."""

        def run() -> PaginatedResult:
            criteria = _coerce(CustomerFilters, filters or {})
            options = _coerce(PaginationOptions, pagination or {})

            if options.page < 1:
                raise InvalidCustomerError(
                    "Page must be 1 or greater", reason="INVALID_PAGE", field="page"
                )
            if options.limit < 1:
                raise InvalidCustomerError(
                    "Limit must be 1 or greater", reason="INVALID_LIMIT", field="limit"
                )

            selected = [c for c in self._customers if self._matches(c, criteria)]

            if options.sort_by:
                attribute = _resolve_sort_field(options.sort_by)
                selected = sorted(
                    selected,
                    key=_sort_key(attribute),
                    reverse=options.sort_order == "desc",
                )

            total = len(selected)
            start = (options.page - 1) * options.limit
            page_items = selected[start:start + options.limit]

            return PaginatedResult(
                data=self._copies(page_items),
                pagination=PaginationMetadata(
                    page=options.page,
                    limit=options.limit,
                    total=total,
                    total_pages=math.ceil(total / options.limit),
                ),
            )

        return await self._execute("list_customers", run)

    @staticmethod
    def _matches(customer: Customer, criteria: CustomerFilters) -> bool:
        if criteria.subscription_tier and customer.subscription_tier != criteria.subscription_tier:
            return False
        if criteria.health_score_min is not None and customer.health_score < criteria.health_score_min:
            return False
        if criteria.health_score_max is not None and customer.health_score > criteria.health_score_max:
            return False
        if criteria.company and criteria.company.casefold() not in customer.company.casefold():
            return False
        if criteria.search_term and criteria.search_term.strip():
            return _matches_term(customer, criteria.search_term.strip())
        return True

    async def get_by_id(self, customer_id: str) -> ServiceResult:
        """Fetch a single customer."""

        def run() -> Customer:
            cid = require_id(customer_id)
            return self._customers[self._index_of(cid)].model_copy(deep=True)

        return await self._execute("get_by_id", run, customer_id=customer_id)

    async def search(self, term: str | None) -> ServiceResult:
        """Customers whose name, company or email contains ``term``."""

        def run() -> list[Customer]:
            if not term or not term.strip():
                return []
            needle = term.strip()
            return self._copies(c for c in self._customers if _matches_term(c, needle))

        return await self._execute("search", run, term_length=len(term or ""))

    async def by_health_score_range(
        self,
        min_score: int = 0,
        max_score: int = 100,
    ) -> ServiceResult:
        """Customers whose health score lies in ``[min_score, max_score]``."""

        def run() -> list[Customer]:
            validate_score_range(min_score, max_score)
            return self._copies(
                c for c in self._customers if min_score <= c.health_score <= max_score
            )

        return await self._execute(
            "by_health_score_range", run, min_score=min_score, max_score=max_score
        )

    async def by_tier(self, tier: SubscriptionTier | str) -> ServiceResult:
        """Customers on exactly ``tier``."""

        def run() -> list[Customer]:
            wanted = validate_tier(tier)
            return self._copies(c for c in self._customers if c.subscription_tier == wanted)

        return await self._execute("by_tier", run, tier=str(getattr(tier, "value", tier)))

    async def stats(self) -> ServiceResult:
        """Aggregate counts and health figures over the whole collection."""

        def run() -> CustomerStats:
            total = len(self._customers)
            by_tier = TierCounts()
            distribution = HealthDistribution()

            for customer in self._customers:
                tier = customer.subscription_tier.value
                setattr(by_tier, tier, getattr(by_tier, tier) + 1)
                band = health_band(customer.health_score)
                setattr(distribution, band, getattr(distribution, band) + 1)

            average = (
                round_half_up(sum(c.health_score for c in self._customers) / total)
                if total
                else 0
            )

            return CustomerStats(
                total=total,
                by_tier=by_tier,
                average_health_score=average,
                health_distribution=distribution,
            )

        return await self._execute("stats", run)

    # Mutations

    async def create(self, payload: CustomerCreate | dict[str, Any]) -> ServiceResult:
        """Validate and add a new customer."""

        def run() -> Customer:
            data = _coerce(CustomerCreate, payload)

            name = validate_name(data.name)
            company = validate_company(data.company)
            email = validate_email_address(data.email)
            tier = (
                validate_tier(data.subscription_tier)
                if data.subscription_tier is not None
                else None
            )
            domains = validate_domains(data.domains)

            self._ensure_unique_email(email)

            now = self._clock()
            customer = Customer(
                id=str(self._next_id),
                name=name,
                company=company,
                email=email,
                subscription_tier=tier or SubscriptionTier.BASIC,
                domains=domains,
                health_score=calculate_health_score(tier, len(domains), email is not None),
                created_at=now,
                updated_at=now,
            )

            self._customers.append(customer)
            self._next_id += 1
            return customer.model_copy(deep=True)

        email = payload.get("email") if isinstance(payload, dict) else getattr(payload, "email", None)
        return await self._execute("create", run, email=email)

    async def update(
        self,
        customer_id: str,
        patch: CustomerUpdate | dict[str, Any],
    ) -> ServiceResult:
        """
        Apply a partial update.

        When the patch touches ``subscriptionTier`` or ``domains`` the health
        score is recomputed from the merged record, account age included, and
        that value replaces any ``healthScore`` sent in the same patch.
        """

        def run() -> Customer:
            cid = require_id(customer_id)
            index = self._index_of(cid)
            data = _coerce(CustomerUpdate, patch)
            provided = data.provided_fields

            changes: dict[str, Any] = {}
            if "name" in provided:
                changes["name"] = validate_name(data.name, updating=True)
            if "company" in provided:
                changes["company"] = validate_company(data.company, updating=True)
            if "email" in provided:
                changes["email"] = validate_email_address(data.email)
            if "subscription_tier" in provided:
                changes["subscription_tier"] = validate_tier(data.subscription_tier)
            if "domains" in provided:
                if data.domains is None:
                    raise InvalidCustomerError(
                        "Domains must be an array of strings",
                        reason="INVALID_DOMAINS_FORMAT",
                        field="domains",
                    )
                changes["domains"] = validate_domains(data.domains)
            if "health_score" in provided:
                changes["health_score"] = validate_health_score(data.health_score)

            self._ensure_unique_email(changes.get("email"), exclude_id=cid)

            now = self._clock()
            merged = self._customers[index].model_copy(update=changes)

            if "subscription_tier" in provided or "domains" in provided:
                merged.health_score = calculate_health_score(
                    merged.subscription_tier,
                    len(merged.domains),
                    merged.email is not None,
                    created_at=merged.created_at,
                    now=now,
                )

            merged.updated_at = now
            updated = Customer.model_validate(merged.model_dump())

            self._customers[index] = updated
            return updated.model_copy(deep=True)

        email = patch.get("email") if isinstance(patch, dict) else getattr(patch, "email", None)
        return await self._execute("update", run, customer_id=customer_id, email=email)

    async def delete(self, customer_id: str) -> ServiceResult:
        """Remove a customer; its id is never handed out again."""

        def run() -> bool:
            cid = require_id(customer_id)
            self._customers.pop(self._index_of(cid))
            return True

        return await self._execute("delete", run, customer_id=customer_id)

    # Maintenance

    async def reset(self) -> ServiceResult:
        """Restore the customers the repository was constructed with."""

        def run() -> int:
            self._load(self._initial)
            return len(self._customers)

        return await self._execute("reset", run)

    async def snapshot(self) -> list[Customer]:
        """Copy of the current collection in insertion order."""
        async with self._lock:
            return self._copies(self._customers)
