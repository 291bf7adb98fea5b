"""Sample customers loaded into a fresh repository."""

from datetime import datetime, timezone

from customer_intel.models.customer import Customer, SubscriptionTier


def _ts(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 9, 0, tzinfo=timezone.utc)


def seed_customers() -> list[Customer]:
    """Return new copies of the eight sample customers."""
    return [
        Customer(
            id="1",
            name="John Smith",
            company="Acme Corp",
            email="john.smith@acmecorp.com",
            subscription_tier=SubscriptionTier.PREMIUM,
            domains=["acmecorp.com", "portal.acmecorp.com"],
            health_score=85,
            created_at=_ts(2024, 1, 15),
            updated_at=_ts(2024, 3, 1),
        ),
        Customer(
            id="2",
            name="Sarah Johnson",
            company="TechStart Inc",
            email="sarah@techstart.io",
            subscription_tier=SubscriptionTier.BASIC,
            domains=["techstart.io"],
            health_score=45,
            created_at=_ts(2024, 2, 3),
            updated_at=_ts(2024, 2, 20),
        ),
        Customer(
            id="3",
            name="Michael Chen",
            company="Global Logistics",
            email="m.chen@globallogistics.com",
            subscription_tier=SubscriptionTier.ENTERPRISE,
            domains=[
                "globallogistics.com",
                "track.globallogistics.com",
                "shipping.globallogistics.com",
            ],
            health_score=92,
            created_at=_ts(2023, 11, 8),
            updated_at=_ts(2024, 3, 10),
        ),
        Customer(
            id="4",
            name="Emily Davis",
            company="Creative Studio",
            email="emily@creativestudio.design",
            subscription_tier=SubscriptionTier.PREMIUM,
            domains=["creativestudio.design"],
            health_score=67,
            created_at=_ts(2024, 1, 28),
            updated_at=_ts(2024, 2, 14),
        ),
        Customer(
            id="5",
            name="Robert Wilson",
            company="Wilson & Sons",
            email="robert@wilsonandsons.com",
            subscription_tier=SubscriptionTier.BASIC,
            domains=[],
            health_score=23,
            created_at=_ts(2024, 2, 18),
            updated_at=_ts(2024, 2, 18),
        ),
        Customer(
            id="6",
            name="Lisa Anderson",
            company="HealthCare Plus",
            email="l.anderson@healthcareplus.org",
            subscription_tier=SubscriptionTier.ENTERPRISE,
            domains=["healthcareplus.org", "patients.healthcareplus.org"],
            health_score=78,
            created_at=_ts(2023, 12, 5),
            updated_at=_ts(2024, 3, 5),
        ),
        Customer(
            id="7",
            name="David Martinez",
            company="Retail Solutions",
            email=None,
            subscription_tier=SubscriptionTier.BASIC,
            domains=["retailsolutions.shop"],
            health_score=15,
            created_at=_ts(2024, 3, 2),
            updated_at=_ts(2024, 3, 2),
        ),
        Customer(
            id="8",
            name="Jennifer Taylor",
            company="FinanceFirst",
            email="jtaylor@financefirst.com",
            subscription_tier=SubscriptionTier.PREMIUM,
            domains=["financefirst.com", "app.financefirst.com"],
            health_score=58,
            created_at=_ts(2024, 1, 9),
            updated_at=_ts(2024, 2, 27),
        ),
    ]
