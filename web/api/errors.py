"""API errors and validation helpers."""

from settings import MAX_PAGE_SIZE


class NotFoundError(Exception):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        self.message = message
        super().__init__(self.message)


class ValidationError(Exception):
    """Validation error."""

    def __init__(self, message: str = "Validation error"):
        self.message = message
        super().__init__(self.message)


MIN_PAGE_SIZE = 1


def validate_page_size(page_size: int) -> None:
    """Validate page_size is in valid range."""
    if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(f"Invalid page_size: {page_size}. Must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}")


def validate_user_id(user_id: str | None) -> None:
    """Every list request is scoped to one account."""
    if not user_id or not user_id.strip():
        raise ValidationError("user_id is required")
