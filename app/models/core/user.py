"""User account model - only what the requirements list needs for display names."""

from dataclasses import dataclass

from app.models.common import BaseEntity

USER_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id VARCHAR PRIMARY KEY,
    email VARCHAR,
    full_name VARCHAR
)
"""


@dataclass(frozen=True)
class UserName(BaseEntity):
    """Display name for a creator/updater id."""

    full_name: str
    email: str

    @classmethod
    def from_row(cls, full_name: str | None, email: str | None) -> "UserName":
        """Build a display name, falling back to the email local part."""
        if full_name and full_name.strip():
            name = full_name.strip()
        elif email:
            name = email.split("@")[0]
        else:
            name = "Unknown"
        return cls(full_name=name, email=email or "N/A")
