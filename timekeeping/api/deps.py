from fastapi import Header

from timekeeping.core.errors import ValidationError


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Acting user, as forwarded by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise ValidationError("X-User-Id header is required", field="X-User-Id")
    return x_user_id.strip()
