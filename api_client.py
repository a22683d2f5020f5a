"""
Async client for the storefront API.

Wraps ``httpx.AsyncClient`` with base-URL composition, bearer-token injection,
a per-call timeout and a transparent refresh-and-retry when an authenticated
call comes back 401. Refreshes are single-flight per client instance: however
many calls fail at once, one refresh request is made and every waiter retries
with its result.
"""
import asyncio
import json
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:4000"
DEFAULT_TIMEOUT = 5.0
MODEL_UPLOAD_TIMEOUT = 60.0


# ----------------------- Errors -----------------------
class ClientError(Exception):
    pass


class APIError(ClientError):
    def __init__(self, status: int, message: str, details: Any = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"APIError({self.status}, {self.message!r})"


class SessionExpiredError(APIError):
    def __init__(self, message: str = "Session expired"):
        super().__init__(401, message)


class RequestTimeoutError(ClientError):
    def __init__(self, message: str = "Request timed out"):
        super().__init__(message)
        self.message = message


class NetworkError(ClientError):
    def __init__(self, message: str = "Network error or server unavailable"):
        super().__init__(message)
        self.message = message


# ----------------------- Session -----------------------
class AuthSession:
    """The signed-in user and their token pair, optionally persisted to a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.user: Optional[dict] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        if path and os.path.exists(path):
            self.load()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def set(self, user: Optional[dict], access_token: Optional[str], refresh_token: Optional[str]) -> None:
        self.user = user
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.save()

    def update_access_token(self, access_token: str) -> None:
        self.access_token = access_token
        self.save()

    def clear(self) -> None:
        self.set(None, None, None)

    def to_dict(self) -> dict:
        return {"user": self.user, "accessToken": self.access_token, "refreshToken": self.refresh_token}

    def load(self) -> None:
        with open(self.path, encoding="utf-8") as fh:
            state = json.load(fh)
        self.user = state.get("user")
        self.access_token = state.get("accessToken")
        self.refresh_token = state.get("refreshToken")

    def save(self) -> None:
        if not self.path:
            return
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh)


class TokenRefresher:
    """Single-flight access-token refresh shared by every call on one client."""

    def __init__(self, client: "ApiClient"):
        self._client = client
        self._lock = asyncio.Lock()

    async def refresh(self, stale_token: Optional[str]) -> str:
        async with self._lock:
            session = self._client.session
            # someone else refreshed while this call was in flight
            if session.access_token and session.access_token != stale_token:
                return session.access_token
            if not session.refresh_token:
                raise SessionExpiredError()

            try:
                response = await self._client.send(
                    "POST", "/api/auth/refresh", json={"refreshToken": session.refresh_token}
                )
                token = self._client.decode(response)["accessToken"]
            except (ClientError, KeyError, TypeError) as exc:
                logger.warning("Token refresh failed: %s", exc)
                self._client.expire_session()
                raise SessionExpiredError() from exc

            session.update_access_token(token)
            logger.debug("Access token refreshed")
            return token


# ----------------------- Client -----------------------
class ApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[AuthSession] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or AuthSession()
        self.timeout = timeout
        self.on_session_expired = on_session_expired
        self.refresher = TokenRefresher(self)
        self._http = httpx.AsyncClient(transport=transport)

        self.auth = AuthAPI(self)
        self.categories = CategoriesAPI(self)
        self.products = ProductsAPI(self)
        self.orders = OrdersAPI(self)
        self.addresses = AddressesAPI(self)
        self.settings = SettingsAPI(self)
        self.upload = UploadAPI(self)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def expire_session(self) -> None:
        self.session.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()

    async def send(
        self,
        method: str,
        endpoint: str,
        *,
        token: Optional[str] = None,
        json: Any = None,
        params: Optional[dict] = None,
        files: Any = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            return await self._http.request(
                method,
                self.base_url + endpoint,
                headers=headers,
                json=json,
                params=params,
                files=files,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError() from exc
        except httpx.HTTPError as exc:
            raise NetworkError() from exc

    @staticmethod
    def decode(response: httpx.Response) -> Any:
        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None
        if response.is_success:
            return data
        if isinstance(data, dict):
            raise APIError(response.status_code, data.get("message") or "Request failed", data.get("details"))
        raise APIError(response.status_code, "Request failed")

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
        files: Any = None,
        auth: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        token = self.session.access_token if auth else None
        kwargs = dict(json=json, params=params, files=files, timeout=timeout)
        response = await self.send(method, endpoint, token=token, **kwargs)

        if response.status_code == 401 and auth and token:
            if not self.session.refresh_token:
                raise SessionExpiredError()
            new_token = await self.refresher.refresh(token)
            # one replay only; a second 401 is reported as-is
            response = await self.send(method, endpoint, token=new_token, **kwargs)

        return self.decode(response)

    async def login(self, email: str, password: str) -> dict:
        data = await self.auth.login(email, password)
        self.session.set(data["user"], data["accessToken"], data["refreshToken"])
        return data

    async def register(self, name: str, email: str, password: str) -> dict:
        data = await self.auth.register({"name": name, "email": email, "password": password, "role": "customer"})
        self.session.set(data["user"], data["accessToken"], data["refreshToken"])
        return data

    def logout(self) -> None:
        self.session.clear()


# ----------------------- Resources -----------------------
class _Resource:
    def __init__(self, client: ApiClient):
        self._client = client

    def _request(self, method: str, endpoint: str, **kwargs):
        return self._client.request(method, endpoint, **kwargs)


class AuthAPI(_Resource):
    def login(self, email: str, password: str):
        return self._request("POST", "/api/auth/login", json={"email": email, "password": password}, auth=False)

    def register(self, data: dict):
        return self._request("POST", "/api/auth/register", json=data, auth=False)

    def me(self):
        return self._request("GET", "/api/auth/me")

    def update_profile(self, data: dict):
        return self._request("PATCH", "/api/auth/profile", json=data)

    def change_password(self, current_password: str, new_password: str):
        body = {"currentPassword": current_password, "newPassword": new_password}
        return self._request("POST", "/api/auth/change-password", json=body)

    def forgot_password(self, email: str):
        return self._request("POST", "/api/auth/forgot-password", json={"email": email}, auth=False)

    def reset_password(self, email: str, reset_token: str, new_password: str):
        body = {"email": email, "resetToken": reset_token, "newPassword": new_password}
        return self._request("POST", "/api/auth/reset-password", json=body, auth=False)


class CategoriesAPI(_Resource):
    def list(self):
        return self._request("GET", "/api/categories", auth=False)

    def get(self, slug: str):
        return self._request("GET", f"/api/categories/{slug}", auth=False)

    def create(self, data: dict):
        return self._request("POST", "/api/categories", json=data)

    def update(self, category_id: str, data: dict):
        return self._request("PUT", f"/api/categories/{category_id}", json=data)

    def delete(self, category_id: str):
        return self._request("DELETE", f"/api/categories/{category_id}")

    def reorder(self, orders: List[Dict[str, Any]]):
        return self._request("PATCH", "/api/categories/reorder", json={"orders": orders})


class ProductsAPI(_Resource):
    def list(self, params: Optional[dict] = None):
        return self._request("GET", "/api/products", params=params, auth=False)

    def get(self, slug: str):
        return self._request("GET", f"/api/products/{slug}", auth=False)

    def create(self, data: dict):
        return self._request("POST", "/api/products", json=data)

    def update(self, product_id: str, data: dict):
        return self._request("PUT", f"/api/products/{product_id}", json=data)

    def delete(self, product_id: str):
        return self._request("DELETE", f"/api/products/{product_id}")


class OrdersAPI(_Resource):
    def list(self):
        return self._request("GET", "/api/orders")

    def list_all(self):
        return self._request("GET", "/api/orders/admin/all")

    def create(self, data: dict):
        return self._request("POST", "/api/orders", json=data)

    def get(self, order_id: str):
        return self._request("GET", f"/api/orders/{order_id}")

    def update_status(self, order_id: str, data: dict):
        return self._request("PUT", f"/api/orders/{order_id}/status", json=data)


class AddressesAPI(_Resource):
    def list(self):
        return self._request("GET", "/api/addresses")

    def create(self, data: dict):
        return self._request("POST", "/api/addresses", json=data)

    def update(self, address_id: str, data: dict):
        return self._request("PUT", f"/api/addresses/{address_id}", json=data)

    def delete(self, address_id: str):
        return self._request("DELETE", f"/api/addresses/{address_id}")

    def set_default(self, address_id: str):
        return self._request("PUT", f"/api/addresses/{address_id}/set-default")


class SettingsAPI(_Resource):
    def get(self):
        return self._request("GET", "/api/settings", auth=False)

    def update(self, data: dict):
        return self._request("PUT", "/api/settings", json=data)


FileSpec = Tuple[str, bytes, str]


class UploadAPI(_Resource):
    def image(self, file: FileSpec):
        return self._request("POST", "/api/upload/image", files={"image": file})

    def images(self, files: List[FileSpec]):
        return self._request("POST", "/api/upload/images", files=[("images", f) for f in files])

    def model3d(self, file: FileSpec):
        # models run up to 20MB
        return self._request("POST", "/api/upload/model3d", files={"model": file}, timeout=MODEL_UPLOAD_TIMEOUT)
