"""Base entity class and clock helpers shared by all domains."""

from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp (DuckDB TIMESTAMP columns are naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class BaseEntity:
    """Base class for all entities. Entities are immutable values."""

    def to_dict(self) -> dict[str, Any]:
        """Convert entity to dictionary."""
        return asdict(self)
