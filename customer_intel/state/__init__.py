"""Customer state ownership and rules."""

from customer_intel.state.customers import CustomerRepository
from customer_intel.state.scoring import calculate_health_score
from customer_intel.state.seed import seed_customers

__all__ = ["CustomerRepository", "calculate_health_score", "seed_customers"]
