import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import BaseModel

from .config import Settings
from .errors import AuthRequired, InvalidToken, TokenExpired, TokenSignatureInvalid

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    username: str


# ---------- Credentials ----------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _password_matches(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # malformed hash in the environment
        logger.error("Configured password hash is not a valid bcrypt hash")
        return False


def verify_credentials(settings: Settings, username: str, password: str) -> bool:
    """Check a login against the admin account and the optional editor account."""
    accounts = [(settings.admin_username, settings.admin_password_hash)]
    if settings.editor_username:
        accounts.append((settings.editor_username, settings.editor_password_hash))
    for account_name, password_hash in accounts:
        if hmac.compare_digest(username.encode(), account_name.encode()):
            return _password_matches(password, password_hash)
    return False


# ---------- Tokens ----------
class TokenService:
    """Issues and verifies HS256 identity tokens. Expiry is the only way a token ends."""

    def __init__(self, secret: str, ttl: timedelta = timedelta(days=7)):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.ttl = ttl

    def issue(self, username: str, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {"username": username, "iat": issued_at, "exp": issued_at + self.ttl}
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(
                token, self._secret, algorithms=[ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidSignatureError:
            raise TokenSignatureInvalid()
        except jwt.InvalidTokenError:
            raise InvalidToken()
        username = claims.get("username")
        if not isinstance(username, str) or not username:
            raise InvalidToken()
        return Identity(username=username)


# ---------- Dependencies ----------
def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def require_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    if credentials is None:
        raise AuthRequired()
    return tokens.verify(credentials.credentials)


def optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Identity]:
    if credentials is None:
        return None
    try:
        return tokens.verify(credentials.credentials)
    except InvalidToken:
        # a bad token on a public route is read as anonymous
        return None
