"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from customer_intel.main import create_app
from customer_intel.models.customer import CustomerCreate, SubscriptionTier
from customer_intel.state.customers import CustomerRepository

FIXED_NOW = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    """Create a clock fixed at a known instant."""
    return ManualClock()


@pytest.fixture
def repository(clock: ManualClock) -> CustomerRepository:
    """Create a repository holding the eight sample customers."""
    return CustomerRepository.with_seed_data(clock=clock)


@pytest.fixture
def empty_repository(clock: ManualClock) -> CustomerRepository:
    """Create a repository with no customers."""
    return CustomerRepository(clock=clock)


@pytest.fixture
def app(repository: CustomerRepository) -> FastAPI:
    """Create an application around a fresh repository."""
    return create_app(repository)


@pytest_asyncio.fixture
async def test_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# Sample data fixtures


@pytest.fixture
def jane_doe() -> CustomerCreate:
    """Create input for a premium customer with one domain and an email."""
    return CustomerCreate(
        name="Jane Doe",
        company="Doe Industries",
        email="jane@doeindustries.com",
        subscription_tier=SubscriptionTier.PREMIUM,
        domains=["doeindustries.com"],
    )
