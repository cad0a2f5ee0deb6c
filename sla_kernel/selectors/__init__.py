"""Read-only query selectors."""

from sla_kernel.selectors.base import BaseSelector
from sla_kernel.selectors.contract_selector import (
    ContractSelector,
    UrgencyOverview,
    month_name,
)

__all__ = ["BaseSelector", "ContractSelector", "UrgencyOverview", "month_name"]
