"""
Credentials, signed tokens and the authentication gate.

Access and refresh tokens are HS256 JWTs carrying ``userId`` and ``role``; the
``type`` claim keeps a refresh token from being accepted as a bearer credential
and vice versa.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel

from config import get_config, parse_duration

logger = logging.getLogger(__name__)

JWT_ALGO = "HS256"
BCRYPT_ROUNDS = 10
RESET_CODE_TTL = timedelta(minutes=15)

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    message = "Invalid token"


class TokenExpired(TokenError):
    message = "Token expired"


class TokenInvalid(TokenError):
    message = "Invalid token"


class TokenPayload(BaseModel):
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# ----------------------- Passwords -----------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ----------------------- Tokens -----------------------
def _issue(user_id: str, role: str, token_type: str, lifetime: str) -> str:
    config = get_config()
    secret = config.require_jwt_secret()
    now = datetime.now(timezone.utc)
    payload = {
        "userId": str(user_id),
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(seconds=parse_duration(lifetime)),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGO)


def issue_access_token(user_id: str, role: str) -> str:
    return _issue(user_id, role, ACCESS, get_config().jwt_access_expiry)


def issue_refresh_token(user_id: str, role: str) -> str:
    return _issue(user_id, role, REFRESH, get_config().jwt_refresh_expiry)


def verify_token(token: str, expected_type: Optional[str] = None) -> TokenPayload:
    secret = get_config().require_jwt_secret()
    try:
        decoded = jwt.decode(token, secret, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise TokenInvalid()
    if expected_type and decoded.get("type") != expected_type:
        raise TokenInvalid()
    user_id = decoded.get("userId")
    role = decoded.get("role")
    if not user_id or not role:
        raise TokenInvalid()
    return TokenPayload(user_id=user_id, role=role)


def extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header or not isinstance(header, str):
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


# ----------------------- Password reset -----------------------
def generate_reset_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def hash_reset_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def epoch_ms(moment: Optional[datetime] = None) -> int:
    moment = moment or datetime.now(timezone.utc)
    return int(moment.timestamp() * 1000)


def reset_code_expiry() -> int:
    return epoch_ms(datetime.now(timezone.utc) + RESET_CODE_TTL)


# ----------------------- Gate -----------------------
def authenticate(request: Request) -> TokenPayload:
    token = extract_bearer(request.headers.get("Authorization"))
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    try:
        user = verify_token(token, expected_type=ACCESS)
    except TokenError as exc:
        raise HTTPException(status_code=401, detail=exc.message)
    request.state.user = user
    return user


def authorize_admin(user: TokenPayload = Depends(authenticate)) -> TokenPayload:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
