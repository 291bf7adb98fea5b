"""API routes for the customer repository."""

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from customer_intel.api.responses import error_response, result_error_response, success_response
from customer_intel.api.security import (
    NO_STORE,
    InvalidRequestError,
    clean_filter_text,
    clean_id,
    clean_search_term,
    get_client_ip,
)
from customer_intel.config import get_settings
from customer_intel.errors import ErrorCode
from customer_intel.models.customer import (
    CustomerCreate,
    CustomerFilters,
    CustomerStats,
    CustomerUpdate,
    PaginatedResult,
    PaginationOptions,
    SubscriptionTier,
)
from customer_intel.state.customers import CustomerRepository
from customer_intel.state.scoring import round_half_up
from customer_intel.utils.logging import get_logger
from customer_intel.utils.tracing import RequestTracer

logger = get_logger(__name__)

router = APIRouter()

STATS_VERSION = "1.0"

SortField = Literal[
    "id", "name", "company", "email", "subscriptionTier", "healthScore", "createdAt", "updatedAt"
]


# Dependency to get the repository


def get_repository(request: Request) -> CustomerRepository:
    """Return the repository owned by the running application."""
    return request.app.state.repository


def _method_not_allowed(path: str, reason: str) -> JSONResponse:
    return error_response(
        f"Method not allowed for {path}. {reason}",
        status.HTTP_405_METHOD_NOT_ALLOWED,
        ErrorCode.METHOD_NOT_ALLOWED.value,
        headers={"Allow": "GET"},
    )


def _percentage(count: int, total: int) -> int:
    return round_half_up(count / total * 100) if total else 0


def _stats_etag(stats: CustomerStats) -> str:
    digest = hashlib.sha256(
        json.dumps(stats.to_wire(), sort_keys=True).encode("utf-8")
    ).hexdigest()
    return f'"stats-{digest[:16]}"'


# Collection


@router.get("/customers")
async def list_customers(
    page: int = Query(default=1, ge=1, le=1000),
    limit: int | None = Query(default=None, ge=1),
    sort_by: SortField | None = Query(default=None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    subscription_tier: SubscriptionTier | None = Query(default=None, alias="subscriptionTier"),
    health_score_min: int | None = Query(default=None, ge=0, le=100, alias="healthScoreMin"),
    health_score_max: int | None = Query(default=None, ge=0, le=100, alias="healthScoreMax"),
    company: str | None = Query(default=None),
    search_term: str | None = Query(default=None, alias="searchTerm"),
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """
    List customers with filtering, sorting and pagination.

    Filters are combined with AND; sorting happens before the page is cut.
    """
    settings = get_settings()
    page_size = limit or settings.default_page_size

    if page_size > settings.max_page_size:
        raise InvalidRequestError(
            f"limit must be at most {settings.max_page_size}",
            code="INVALID_LIMIT",
            field="limit",
        )

    if (
        health_score_min is not None
        and health_score_max is not None
        and health_score_min > health_score_max
    ):
        raise InvalidRequestError(
            "healthScoreMin cannot be greater than healthScoreMax",
            code="INVALID_RANGE",
            field="healthScoreMin",
        )

    filters = CustomerFilters(
        subscription_tier=subscription_tier,
        health_score_min=health_score_min,
        health_score_max=health_score_max,
        company=clean_filter_text(company, "company"),
        search_term=clean_filter_text(search_term, "searchTerm"),
    )
    pagination = PaginationOptions(
        page=page,
        limit=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    result = await repository.list_customers(filters, pagination)
    if not result.success:
        return result_error_response(result)

    listing: PaginatedResult = result.data
    return success_response(listing.to_wire())


@router.post("/customers", status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """Create a new customer."""
    result = await repository.create(payload)
    if not result.success:
        return result_error_response(result)

    logger.info("customer_created", customer_id=result.data.id)
    return success_response(result.data.to_wire(), status.HTTP_201_CREATED)


# Search and statistics are declared before /customers/{customer_id}


@router.get("/customers/search")
async def search_customers(
    request: Request,
    q: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """Search customers by name, company or email."""
    settings = get_settings()
    tracer = RequestTracer("search_customers")
    client_ip = get_client_ip(request)

    term = clean_search_term(q, client_ip)
    max_results = limit or settings.search_default_limit
    if max_results > settings.search_max_limit:
        raise InvalidRequestError(
            f"limit must be at most {settings.search_max_limit}",
            code="INVALID_LIMIT",
            field="limit",
        )

    logger.info(
        "search_requested",
        term_preview=term[:20],
        limit=max_results,
        client_ip=client_ip,
    )

    with tracer.trace_operation("repository_search"):
        result = await repository.search(term)

    if not result.success:
        return result_error_response(result)

    matches = result.data
    limited = matches[:max_results]
    search_time = round(tracer.elapsed_ms, 3)

    logger.info(
        "search_completed",
        total_found=len(matches),
        returned=len(limited),
        search_time_ms=search_time,
    )
    logger.debug("request_trace", **tracer.get_trace_summary())

    return success_response(
        {
            "results": [customer.to_wire() for customer in limited],
            "metadata": {
                "searchTerm": term,
                "resultCount": len(limited),
                "totalFound": len(matches),
                "limit": max_results,
                "searchTime": search_time,
            },
        },
        headers={"Cache-Control": NO_STORE},
    )


@router.api_route(
    "/customers/search",
    methods=["POST", "PUT", "DELETE"],
    include_in_schema=False,
)
async def search_method_not_allowed(request: Request) -> JSONResponse:
    return _method_not_allowed(request.url.path, "Use GET with query parameters.")


@router.get("/customers/stats")
async def customer_stats(
    request: Request,
    repository: CustomerRepository = Depends(get_repository),
) -> Response:
    """
    Aggregate customer statistics.

    Supports conditional requests: an ``If-None-Match`` header carrying the
    current ETag yields an empty 304.
    """
    settings = get_settings()
    tracer = RequestTracer("customer_stats")
    cache_control = f"public, max-age={settings.stats_cache_seconds}"

    with tracer.trace_operation("repository_stats"):
        result = await repository.stats()
    if not result.success:
        logger.error("stats_failed", code=result.reason, error=result.error)
        return error_response(
            "Unable to retrieve customer statistics",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "SERVICE_ERROR",
        )

    stats: CustomerStats = result.data
    etag = _stats_etag(stats)

    if_none_match = request.headers.get("if-none-match", "")
    if etag in [tag.strip() for tag in if_none_match.split(",")]:
        logger.info("stats_not_modified", client_ip=get_client_ip(request))
        return Response(
            status_code=status.HTTP_304_NOT_MODIFIED,
            headers={"ETag": etag, "Cache-Control": cache_control},
        )

    now = datetime.now(timezone.utc)
    total = stats.total
    data: dict[str, Any] = stats.to_wire()
    data["metadata"] = {
        "generatedAt": now.isoformat(),
        "cacheExpiry": (now + timedelta(seconds=settings.stats_cache_seconds)).isoformat(),
        "version": STATS_VERSION,
    }
    data["additionalMetrics"] = {
        "tierDistribution": {
            "basicPercentage": _percentage(stats.by_tier.basic, total),
            "premiumPercentage": _percentage(stats.by_tier.premium, total),
            "enterprisePercentage": _percentage(stats.by_tier.enterprise, total),
        },
        "healthDistributionPercentages": {
            "healthyPercentage": _percentage(stats.health_distribution.healthy, total),
            "warningPercentage": _percentage(stats.health_distribution.warning, total),
            "criticalPercentage": _percentage(stats.health_distribution.critical, total),
        },
        "performanceMetrics": {
            "responseTime": round(tracer.elapsed_ms, 3),
            "dataFreshness": "real-time",
        },
    }

    logger.info(
        "stats_generated",
        total=total,
        average_health_score=stats.average_health_score,
    )
    logger.debug("request_trace", **tracer.get_trace_summary())

    return success_response(
        data,
        headers={"ETag": etag, "Cache-Control": cache_control, "Vary": "Accept-Encoding"},
    )


@router.api_route(
    "/customers/stats",
    methods=["POST", "PUT", "DELETE"],
    include_in_schema=False,
)
async def stats_method_not_allowed(request: Request) -> JSONResponse:
    return _method_not_allowed(request.url.path, "Statistics are read-only.")


# Single customer


@router.get("/customers/{customer_id}")
async def get_customer(
    customer_id: str,
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """Get a customer by ID."""
    result = await repository.get_by_id(clean_id(customer_id))
    if not result.success:
        return result_error_response(result)

    return success_response(result.data.to_wire())


@router.put("/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """Apply a partial update to a customer."""
    cid = clean_id(customer_id)

    if not payload.provided_fields:
        raise InvalidRequestError(
            "At least one field must be provided for update",
            code="NO_UPDATE_FIELDS",
        )

    result = await repository.update(cid, payload)
    if not result.success:
        return result_error_response(result)

    logger.info(
        "customer_updated",
        customer_id=cid,
        fields=sorted(payload.provided_fields),
    )
    return success_response(result.data.to_wire())


@router.delete("/customers/{customer_id}")
async def delete_customer(
    customer_id: str,
    repository: CustomerRepository = Depends(get_repository),
) -> JSONResponse:
    """Delete a customer."""
    cid = clean_id(customer_id)

    result = await repository.delete(cid)
    if not result.success:
        return result_error_response(result)

    logger.info("customer_deleted", customer_id=cid)
    return success_response({"deleted": True, "id": cid})
