"""
HTTP backend over a REST document API and callable functions.

Endpoints:
    GET   /users/{uid}            user document
    PATCH /users/{uid}            merge fields into the user document
    GET   /users/{uid}/contacts   contact list ({"contacts": [...]} or a list)
    POST  /functions/{name}       {"data": ...} -> {"result": ...}

Errors use the callable error envelope {"error": {"status", "message"}}.
Streams poll and yield only when the document changed.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from django.core.exceptions import ImproperlyConfigured

from .. import conf
from ..exceptions import AlreadyExists, InvalidInput, NotFound, RemoteFailure, Unauthenticated
from .base import AuthBackend, RemoteBackend

logger = logging.getLogger(__name__)


class HttpBackend(RemoteBackend):
    """Remote backend speaking JSON over httpx."""

    def __init__(
        self,
        auth: AuthBackend,
        base_url: str = None,
        *,
        timeout: float = None,
        poll_seconds: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        base_url = base_url or conf.get_setting("API_BASE_URL")
        if not base_url:
            raise ImproperlyConfigured("LIFESIGNAL_API_BASE_URL is required for HttpBackend")
        self.auth = auth
        self.poll_seconds = (
            poll_seconds if poll_seconds is not None else conf.get_setting("STREAM_POLL_SECONDS")
        )
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout or conf.get_setting("HTTP_TIMEOUT_SECONDS"),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = await self.auth.id_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(
                method, url, headers=await self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            raise RemoteFailure(operation, original_error=e) from e

        if response.status_code >= 400:
            raise self._error(operation, response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteFailure(operation, "response is not JSON", original_error=e) from e

    def _error(self, operation: str, response: httpx.Response) -> Exception:
        """Translate an error response into the lifesignal taxonomy."""
        status, message = "", response.reason_phrase
        try:
            error = response.json().get("error") or {}
            if isinstance(error, dict):
                status = error.get("status", "")
                message = error.get("message") or message
        except (ValueError, AttributeError):
            pass

        code = response.status_code
        if code == 404 or status == "NOT_FOUND":
            return NotFound(operation, message)
        if code == 409 or status == "ALREADY_EXISTS":
            return AlreadyExists(message)
        if code == 401 or status == "UNAUTHENTICATED":
            return Unauthenticated(message)
        if status == "INVALID_ARGUMENT":
            return InvalidInput(operation, message)
        return RemoteFailure(operation, f"HTTP {code}: {message}")

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def load_user(self, uid: str) -> dict[str, Any]:
        return await self._request("load_user", "GET", f"/users/{uid}")

    async def update_user_fields(self, uid: str, fields: dict[str, Any]) -> None:
        await self._request("update_user_fields", "PATCH", f"/users/{uid}", json=fields)
        logger.info("Updated user %s fields: %s", uid, sorted(fields))

    async def load_contacts(self, uid: str) -> list[dict[str, Any]]:
        body = await self._request("load_contacts", "GET", f"/users/{uid}/contacts")
        if isinstance(body, dict):
            return body.get("contacts", [])
        return body or []

    async def _poll(self, load, uid: str):
        previous = None
        while True:
            try:
                current = await load(uid)
            except RemoteFailure as e:
                logger.warning("Polling %s for %s failed: %s", load.__name__, uid, e)
            else:
                if current != previous:
                    previous = current
                    yield current
            await asyncio.sleep(self.poll_seconds)

    def stream_user(self, uid: str):
        return self._poll(self.load_user, uid)

    def stream_contacts(self, uid: str):
        return self._poll(self.load_contacts, uid)

    # -------------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------------

    async def call_function(self, name: str, data: Optional[dict[str, Any]] = None) -> Any:
        body = await self._request(name, "POST", f"/functions/{name}", json={"data": data or {}})
        logger.info("Remote function %s succeeded", name)
        if isinstance(body, dict):
            return body.get("result")
        return body
