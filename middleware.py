import logging
import math
import re
import threading
import time
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_config

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}

_OBJECT_ID_RE = re.compile(r"/([a-f0-9]{24})", re.IGNORECASE)
_WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def client_ip(request: Request) -> str:
    # ProxyHeadersMiddleware rewrites the client only for trusted proxies
    return request.client.host if request.client else "unknown"


# ----------------------- Rate limiting -----------------------
class RateLimiter:
    """Fixed-window request budget per client IP, used as a route dependency."""

    def __init__(
        self,
        name: str,
        message: str,
        window_ms: Optional[int] = None,
        max_requests: Optional[int] = None,
        bypass_in_development: bool = True,
    ):
        self.name = name
        self.message = message
        self._window_ms = window_ms
        self._max_requests = max_requests
        self.bypass_in_development = bypass_in_development
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_sweep = time.monotonic()

    @property
    def window_ms(self) -> int:
        return self._window_ms if self._window_ms is not None else get_config().rate_limit_window_ms

    @property
    def max_requests(self) -> int:
        return self._max_requests if self._max_requests is not None else get_config().rate_limit_max_requests

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def _sweep(self, now: float, window: float) -> None:
        self._hits = {k: v for k, v in self._hits.items() if now - v[0] < window}
        self._last_sweep = now

    def hit(self, key: str) -> Tuple[bool, int, float]:
        """Count one request; returns (allowed, remaining, seconds until reset)."""
        window = self.window_ms / 1000.0
        limit = self.max_requests
        now = time.monotonic()
        with self._lock:
            if now - self._last_sweep >= window:
                self._sweep(now, window)
            started, count = self._hits.get(key, (now, 0))
            if now - started >= window:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
        reset_in = max(0.0, window - (now - started))
        return count <= limit, max(0, limit - count), reset_in

    async def __call__(self, request: Request) -> None:
        if self.bypass_in_development and get_config().bypass_rate_limits:
            return
        ip = client_ip(request)
        allowed, remaining, reset_in = self.hit(ip)
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(math.ceil(reset_in)),
        }
        if not allowed:
            logger.warning("Rate limit %s exceeded for %s on %s", self.name, ip, request.url.path)
            headers["Retry-After"] = str(math.ceil(reset_in))
            raise HTTPException(status_code=429, detail=self.message, headers=headers)


api_limiter = RateLimiter(
    "api",
    "Too many requests from this IP, please try again later.",
)
auth_limiter = RateLimiter(
    "auth",
    "Çok fazla deneme yaptınız, lütfen daha sonra tekrar deneyin.",
    window_ms=15 * 60 * 1000,
    max_requests=5,
)
upload_limiter = RateLimiter(
    "upload",
    "Too many upload requests, please try again later.",
    window_ms=15 * 60 * 1000,
    max_requests=20,
    bypass_in_development=False,
)


# ----------------------- Sanitising -----------------------
def sanitize_mongo(value: Any) -> Any:
    """Drop keys that MongoDB would read as operators or dotted paths."""
    if isinstance(value, dict):
        return {
            k: sanitize_mongo(v)
            for k, v in value.items()
            if not (isinstance(k, str) and (k.startswith("$") or "." in k))
        }
    if isinstance(value, list):
        return [sanitize_mongo(v) for v in value]
    return value


# ----------------------- Headers -----------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/uploads"):
            response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
            return response
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


# ----------------------- Audit -----------------------
def action_type(method: str, path: str) -> str:
    if "/status" in path:
        return "UPDATE_STATUS"
    if "/upload" in path:
        return "UPLOAD"
    return {
        "POST": "CREATE",
        "PUT": "UPDATE",
        "PATCH": "UPDATE",
        "DELETE": "DELETE",
        "GET": "READ",
    }.get(method, "UNKNOWN")


def resource_type(path: str) -> str:
    for fragment, name in (
        ("/products", "PRODUCT"),
        ("/categories", "CATEGORY"),
        ("/orders", "ORDER"),
        ("/addresses", "ADDRESS"),
        ("/settings", "SETTINGS"),
        ("/upload", "FILE"),
        ("/users", "USER"),
    ):
        if fragment in path:
            return name
    return "UNKNOWN"


def resource_id(path: str) -> Optional[str]:
    match = _OBJECT_ID_RE.search(path)
    return match.group(1) if match else None


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Logs admin requests once the authentication gate has identified the caller."""

    async def dispatch(self, request: Request, call_next):
        # created here so the handler's request shares the same state dict
        request.state.user = None
        response = await call_next(request)
        user = getattr(request.state, "user", None)
        if user is None or not user.is_admin:
            return response
        entry = {
            "userId": user.user_id,
            "userRole": user.role,
            "action": action_type(request.method, request.url.path),
            "resource": resource_type(request.url.path),
            "resourceId": resource_id(request.url.path),
            "method": request.method,
            "path": request.url.path,
            "ip": client_ip(request),
            "userAgent": request.headers.get("user-agent", "unknown"),
            "statusCode": response.status_code,
        }
        if response.status_code >= 400:
            audit_logger.warning("Admin action failed %s", entry)
        elif request.method in _WRITE_METHODS:
            audit_logger.info("Admin action successful %s", entry)
        return response
