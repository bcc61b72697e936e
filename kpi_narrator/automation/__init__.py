from .retry import RetryPolicy, retry
from .leases import PeriodLeaseRegistry

__all__ = ["RetryPolicy", "retry", "PeriodLeaseRegistry"]
