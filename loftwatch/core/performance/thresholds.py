"""Per-operation duration thresholds for reservation operations."""

from dataclasses import dataclass, fields, replace
from typing import Dict

# Operations without a dedicated threshold
DEFAULT_THRESHOLD_MS = 1000


@dataclass(frozen=True)
class OperationThresholds:
    """Expected upper bound, in milliseconds, for each operation type."""

    loft_search: int = 1000
    loft_details: int = 500
    availability_check: int = 800
    pricing_calculation: int = 300
    reservation_creation: int = 2000
    reservation_validation: int = 200
    database_query: int = 1000
    cache_operation: int = 50

    def for_operation(self, operation: str) -> int:
        """Threshold for an operation name, falling back to the default."""
        if operation in self.as_dict():
            return getattr(self, operation)
        return DEFAULT_THRESHOLD_MS

    def with_overrides(self, overrides: Dict[str, int]) -> "OperationThresholds":
        """Copy with some thresholds replaced; unknown names are rejected."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown operations in thresholds: {sorted(unknown)}")
        return replace(self, **overrides)

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
