"""
API Gateway for the library backend.

Provides a typed, async interface for making HTTP requests to the backend
with envelope parsing, error classification, bounded retries and token
management.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from library_sync.core.cache import CatalogCache
from library_sync.core.config import Settings, get_settings
from library_sync.core.error_messages import (
    classify_error_code,
    get_user_friendly_message,
    is_authentication_message,
    is_user_facing,
)
from library_sync.core.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    HtmlResponseError,
    LibraryClientError,
    MalformedResponseError,
    NetworkError,
    UnclassifiedServerError,
)
from library_sync.schemas.base import ApiEnvelope, ApiErrorDetail
from library_sync.storage.base import KeyValueStorage
from library_sync.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)

# Historical URL shapes for a single book, tried in order
BOOK_BY_ID_PATHS = (
    "books/{book_id}",
    "mobile/books/{book_id}",
    "books/details/{book_id}",
)

USER_ID_FIELDS = ("id", "userId", "user_id", "_id")


def looks_like_html(text: str) -> bool:
    """Heuristic for HTML error pages served instead of JSON."""
    head = text.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


class LibraryGateway:
    """
    HTTP gateway for the library REST API.

    Features:
        - Bearer token lazily loaded from storage
        - No cookies sent or kept between requests
        - Retry logic for transient errors (502, 503, timeouts)
        - Two-tier error classification (user-facing vs. system)
        - In-memory TTL cache for catalog listings
    """

    RETRY_STATUS_CODES = (502, 503)
    AUTH_STATUS_CODES = (401, 403)

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[KeyValueStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[CatalogCache] = None,
    ):
        """
        Initialize the gateway.

        Args:
            settings: Library settings (default: get_settings())
            storage: Key-value storage where the host app keeps the token
            client: Pre-built httpx client (created lazily when omitted)
            cache: Catalog cache (default: built from settings)
        """
        self.settings = settings or get_settings()
        self.storage = storage or MemoryStorage()
        self.base_url = self.settings.api_root
        self.cache = cache or CatalogCache(settings=self.settings)
        self._client = client
        self._owns_client = client is None
        self._token: Optional[str] = None

    # ==========================================
    # Session
    # ==========================================

    def set_token(self, token: Optional[str]) -> None:
        """Set (or clear) the in-memory bearer token."""
        self._token = token or None

    async def get_token(self) -> Optional[str]:
        """Return the bearer token, loading it from storage if absent."""
        if self._token:
            return self._token
        try:
            self._token = await self.storage.get_item(self.settings.AUTH_TOKEN_KEY) or None
        except Exception as e:
            logger.warning(f"Could not read auth token from storage: {e}")
            self._token = None
        return self._token

    async def has_valid_token(self) -> bool:
        """Check that a non-empty token is available."""
        return bool(await self.get_token())

    async def get_current_user_id(self) -> Optional[str]:
        """Resolve the current user id from the host app's stored user data."""
        try:
            raw = await self.storage.get_item(self.settings.USER_DATA_KEY)
            if not raw:
                return None
            user_data = json.loads(raw)
        except Exception as e:
            logger.warning(f"Could not read user data from storage: {e}")
            return None

        if not isinstance(user_data, dict):
            return None
        for field in USER_ID_FIELDS:
            value = user_data.get(field)
            if value not in (None, ""):
                return str(value)
        return None

    async def _require_user_id(self) -> str:
        user_id = await self.get_current_user_id()
        if not user_id:
            raise AuthenticationError("User not authenticated", 401)
        return user_id

    # ==========================================
    # HTTP plumbing
    # ==========================================

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
            self._owns_client = True
        return self._client

    def _get_url(self, endpoint: str) -> str:
        """Build full URL for an endpoint."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _get_headers(self, include_auth: bool = True) -> dict:
        """Build request headers."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if include_auth:
            token = await self.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def _classify_error(self, payload: Any, status_code: int) -> LibraryClientError:
        """
        Turn an error payload into the matching exception.

        User-facing errors keep the backend message; anything else is logged
        and replaced by a generic message.
        """
        envelope: Optional[ApiEnvelope] = None
        if isinstance(payload, dict):
            try:
                envelope = ApiEnvelope.model_validate(payload)
            except ValidationError:
                envelope = None

        message = envelope.error_message if envelope else None
        detail = envelope.error if envelope else None
        code = detail.code if isinstance(detail, ApiErrorDetail) else None

        if status_code in self.AUTH_STATUS_CODES or is_authentication_message(message):
            self._token = None
            return AuthenticationError(message or "Authentication failed", status_code, payload)

        error_type = classify_error_code(code) or classify_error_code(message)
        error_code = error_type.value if error_type else code

        if isinstance(detail, ApiErrorDetail) and (detail.type or "").upper() == "USER_ERROR":
            return BusinessRuleError(
                detail.message or get_user_friendly_message(code),
                status_code,
                payload,
                error_code=error_code,
            )

        if is_user_facing(code) or is_user_facing(message):
            return BusinessRuleError(
                message or get_user_friendly_message(code),
                status_code,
                payload,
                error_code=error_code,
            )

        logger.error(f"Backend system error (hidden from user): status={status_code} payload={payload!r}")
        return UnclassifiedServerError(status_code, payload)

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Process API response and handle errors.

        Raises:
            HtmlResponseError: HTML page instead of JSON
            MalformedResponseError: Body is not valid JSON
            LibraryClientError: Classified error for non-2xx or success=false
        """
        text = response.text

        if looks_like_html(text):
            logger.error(f"HTML response from {response.request.url} (status {response.status_code})")
            raise HtmlResponseError(
                "O servidor devolveu uma página HTML em vez de JSON",
                response.status_code,
            )

        if response.status_code == 204 or not text.strip():
            if response.status_code >= 400:
                raise self._classify_error(None, response.status_code)
            return {}

        try:
            payload = response.json()
        except ValueError:
            raise MalformedResponseError(
                "Resposta inválida do servidor",
                response.status_code,
                text[:200],
            )

        if response.status_code >= 400:
            raise self._classify_error(payload, response.status_code)

        if isinstance(payload, dict) and payload.get("success") is False:
            raise self._classify_error(payload, response.status_code)

        return payload

    async def _request(
        self,
        method: str,
        endpoint: str,
        include_auth: bool = True,
        **kwargs,
    ) -> Any:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without the API prefix)
            include_auth: Whether to include auth token
            **kwargs: Additional arguments for httpx

        Returns:
            Parsed JSON response

        Raises:
            LibraryClientError: For API errors
        """
        client = self._get_client()
        url = self._get_url(endpoint)
        headers = await self._get_headers(include_auth)
        max_retries = self.settings.HTTP_MAX_RETRIES
        delay = self.settings.HTTP_RETRY_DELAY_SECONDS

        last_error: Optional[LibraryClientError] = None
        for attempt in range(max_retries + 1):
            try:
                response = await client.request(method, url, headers=headers, **kwargs)
                client.cookies.clear()

                if response.status_code in self.RETRY_STATUS_CODES and attempt < max_retries:
                    await asyncio.sleep(delay * (attempt + 1))
                    continue

                return self._handle_response(response)

            except httpx.TimeoutException:
                last_error = NetworkError("Tempo de requisição esgotado", 0)
                if attempt < max_retries:
                    await asyncio.sleep(delay)
                    continue
            except httpx.TransportError as e:
                logger.warning(f"{method} {url} failed: {e}")
                last_error = NetworkError(
                    "Não foi possível conectar ao servidor. Verifique sua conexão.",
                    0,
                )
                break

        raise last_error

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Issue an authenticated request and return the decoded envelope."""
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params
        return await self._request(method.upper(), path, **kwargs)

    async def get(self, endpoint: str, params: Optional[dict] = None) -> Any:
        """Make a GET request."""
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Optional[dict] = None) -> Any:
        """Make a POST request."""
        return await self.request("POST", endpoint, json=json)

    async def patch(self, endpoint: str, json: Optional[dict] = None) -> Any:
        """Make a PATCH request."""
        return await self.request("PATCH", endpoint, json=json)

    async def delete(self, endpoint: str, json: Optional[dict] = None) -> Any:
        """Make a DELETE request, optionally with a body."""
        return await self.request("DELETE", endpoint, json=json)

    async def close(self) -> None:
        """Close the underlying client if this gateway created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LibraryGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ==========================================
    # Catalog
    # ==========================================

    async def get_books(self, params: Optional[dict] = None, bypass_cache: bool = False) -> Any:
        """List catalog books, served from the TTL cache unless bypassed."""
        key = CatalogCache.make_key("books", params)
        if not bypass_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        data = await self.get("books", params=params)
        self.cache.set(key, data)
        return data

    def clear_catalog_cache(self) -> int:
        """Drop every cached catalog listing."""
        return self.cache.invalidate_all()

    async def get_book_by_id(self, book_id: Any) -> Any:
        """
        Fetch a single book, trying each known URL shape in turn.

        Auth, business and network errors stop the fallback immediately.
        """
        last_error: Optional[LibraryClientError] = None
        for template in BOOK_BY_ID_PATHS:
            path = template.format(book_id=book_id)
            try:
                return await self.get(path)
            except (AuthenticationError, BusinessRuleError, NetworkError):
                raise
            except LibraryClientError as e:
                logger.info(f"Book lookup via {path} failed ({type(e).__name__}), trying next path")
                last_error = e
        raise last_error

    # ==========================================
    # User status sources
    # ==========================================

    async def get_user_books(
        self,
        user_id: Optional[str] = None,
        status: str = "all",
        include_history: bool = True,
    ) -> Any:
        """Books currently (or previously) borrowed by the user."""
        user_id = user_id or await self._require_user_id()
        return await self.get(
            f"mobile/users/{user_id}/books",
            params={"status": status, "includeHistory": str(include_history).lower()},
        )

    async def get_borrow_requests(self, status: str = "all") -> Any:
        """The user's borrow requests filtered by status."""
        user_id = await self._require_user_id()
        return await self.get(f"mobile/users/{user_id}/borrow-requests", params={"status": status})

    async def get_user_reservations(self, status: str = "all") -> Any:
        """The user's reservations filtered by status."""
        user_id = await self._require_user_id()
        return await self.get(f"mobile/users/{user_id}/reservations", params={"status": status})

    async def get_recent_activity(self, limit: int = 20) -> Any:
        """Recent account activity, used for the unread badge."""
        user_id = await self._require_user_id()
        return await self.get(f"mobile/users/{user_id}/activities", params={"limit": limit})

    # ==========================================
    # Writes (invalidate the catalog cache)
    # ==========================================

    async def create_reservation(self, book_id: Any, payload: Optional[dict] = None) -> Any:
        """Reserve a book on behalf of the current user."""
        user_id = await self._require_user_id()
        try:
            return await self.post(f"mobile/users/{user_id}/books/{book_id}/reserve", json=payload or {})
        finally:
            self.clear_catalog_cache()

    async def create_borrow_request(self, book_id: Any, payload: Optional[dict] = None) -> Any:
        """Submit a borrow request for librarian approval."""
        user_id = await self._require_user_id()
        try:
            return await self.post(f"mobile/users/{user_id}/books/{book_id}/borrow-request", json=payload or {})
        finally:
            self.clear_catalog_cache()

    async def cancel_reservation(self, reservation_id: Any, reason: Optional[str] = None) -> Any:
        """
        Cancel a reservation.

        Some deployments reject a body on DELETE, so this tries DELETE with
        a body, then DELETE without one, then a status PATCH.
        """
        user_id = await self._require_user_id()
        path = f"mobile/users/{user_id}/reservations/{reservation_id}"
        body = {"reason": reason or "Cancelled by user"}
        try:
            try:
                return await self.delete(path, json=body)
            except (AuthenticationError, BusinessRuleError, NetworkError):
                raise
            except LibraryClientError as e:
                logger.info(f"DELETE with body rejected ({type(e).__name__}), retrying without body")

            try:
                return await self.delete(path)
            except (AuthenticationError, BusinessRuleError, NetworkError):
                raise
            except LibraryClientError as e:
                logger.info(f"DELETE without body rejected ({type(e).__name__}), falling back to PATCH")

            return await self.patch(path, json={"status": "CANCELLED", **body})
        finally:
            self.clear_catalog_cache()
