import hashlib
import hmac
import secrets
from typing import Optional

import jwt

from errors import InvalidToken

TOKEN_ALGORITHM = "HS256"


# Passwords

def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    return salt + "$" + hashlib.sha256((salt + password).encode()).hexdigest()


def verify_password(password: str, stored: str) -> bool:
    salt, sep, _ = stored.partition("$")
    if not sep:
        return False
    return hmac.compare_digest(hash_password(password, salt), stored)


# Session tokens

class TokenService:
    """Issues and verifies non-expiring HS256 tokens carrying ``{"user": {"id": ...}}``.

    The same secret signs and verifies; it is handed in once at construction.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._key = secret

    def issue(self, user_id: str) -> str:
        return jwt.encode({"user": {"id": user_id}}, self._key, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: Optional[str]) -> str:
        if not token:
            raise InvalidToken("missing token")
        try:
            claims = jwt.decode(token, self._key, algorithms=[TOKEN_ALGORITHM])
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(str(exc)) from exc
        try:
            user_id = claims["user"]["id"]
        except (TypeError, KeyError) as exc:
            raise InvalidToken("token carries no user id") from exc
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken("token carries no user id")
        return user_id
