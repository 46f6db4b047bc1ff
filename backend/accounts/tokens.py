"""Signed session tokens.

A token is ``{"user_id": <pk>}`` signed with the project's SECRET_KEY and
timestamped, so it can be verified without a server-side session table.
"""

from django.conf import settings
from django.core import signing

TOKEN_SALT = "accounts.token"


class InvalidToken(Exception):
    """Raised when a token is malformed, tampered with or expired."""


def issue_token(user) -> str:
    return signing.dumps({"user_id": user.pk}, salt=TOKEN_SALT, compress=True)


def read_token(token: str, max_age=None) -> int:
    """Verify ``token`` and return the user id it was issued for."""
    if max_age is None:
        max_age = settings.TASKBOARD["TOKEN_MAX_AGE"]
    try:
        payload = signing.loads(token, salt=TOKEN_SALT, max_age=max_age)
    except signing.SignatureExpired as exc:
        raise InvalidToken("Token expired") from exc
    except signing.BadSignature as exc:
        raise InvalidToken("Bad token signature") from exc

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if user_id is None:
        raise InvalidToken("Token carries no user id")
    return user_id
