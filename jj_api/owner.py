import hashlib
import os
import re
import secrets

from fastapi import Request, Response

COOKIE_NAME = os.getenv("JJ_COOKIE_NAME", "jj_token")
COOKIE_SECURE = os.getenv("JJ_COOKIE_SECURE", "false").lower() == "true"
COOKIE_MAX_AGE_DAYS = int(os.getenv("JJ_COOKIE_MAX_AGE_DAYS", "365"))

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


def issue_token() -> str:
    return secrets.token_urlsafe(32)


def is_valid_token(token: str | None) -> bool:
    return bool(token) and TOKEN_PATTERN.fullmatch(token) is not None


def owner_key(token: str) -> str:
    """Stable owner id derived from the cookie token.

    Owner ids appear in file names, media URLs and response bodies; the token
    itself only ever travels in the cookie.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def set_owner_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


async def get_owner_id(request: Request, response: Response) -> str:
    """Resolve the anonymous owner for this request, issuing a token if needed."""
    token = request.cookies.get(COOKIE_NAME)
    if not is_valid_token(token):
        token = issue_token()
        set_owner_cookie(response, token)
    return owner_key(token)
