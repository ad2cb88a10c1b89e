from fastapi import Header, Request

from shared.models.errors import UnauthorizedError, ValidationError
from shared.models.identity import Identity, Role


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-Api-Key header against the configured API key.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str | None): The value of the X-Api-Key header.

    Raises:
        UnauthorizedError: 401 if the key is missing or does not match.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("API_SERVER_API_KEY")
    if not x_api_key or x_api_key != expected_key:
        raise UnauthorizedError("Invalid or missing API key")


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    """Build the caller identity from the headers set by the authentication gateway.

    Args:
        x_user_id (str | None): The X-User-Id header.
        x_user_role (str | None): The X-User-Role header; defaults to "user".

    Raises:
        UnauthorizedError: 401 if no user id was forwarded.
        ValidationError: 400 if the role is unknown.
    """
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("Missing user identity")
    role = (x_user_role or Role.USER.value).strip().lower()
    try:
        return Identity(user_id=x_user_id.strip(), role=Role(role))
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'", details={"header": "X-User-Role"})
