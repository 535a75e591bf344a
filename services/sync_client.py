"""
Sync Client - talks to the share registry over HTTP.

Every call is a single request with no automatic retry. Failures are raised as
errors from services.errors so callers can surface them at the action
boundary.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError as SchemaValidationError

from models.register_models import ChatMessage, ClassSnapshot, SchoolClass
from services.errors import (
    CodeExpired, Forbidden, NotFound, TransientNetworkError, ValidationError
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

_STATUS_ERRORS = {
    400: ValidationError,
    401: Forbidden,
    403: Forbidden,
    404: NotFound,
    410: CodeExpired,
}


class SyncClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientNetworkError(f"Request to {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Request to {path} failed: {str(e)}") from e

        if response.is_success:
            return response

        detail = _error_detail(response)
        error_cls = _STATUS_ERRORS.get(response.status_code, TransientNetworkError)
        raise error_cls(detail)

    # ==================== SNAPSHOTS ====================

    async def publish(self, school_class: SchoolClass) -> str:
        """Publish the full class; the registry answers with a brand new code"""
        response = await self._request("POST", "/api/share", json=school_class.to_wire())
        try:
            code = _json_body(response)["code"]
        except (KeyError, TypeError):
            raise TransientNetworkError("Registry reply to /api/share has no code")
        logger.info(f"Published class {school_class.id} as {code}")
        return code

    async def fetch(self, code: str) -> ClassSnapshot:
        response = await self._request("GET", "/api/view", params={"code": code.strip()})
        try:
            return ClassSnapshot.model_validate(_json_body(response))
        except SchemaValidationError as e:
            raise TransientNetworkError(f"Registry returned malformed class data: {e.error_count()} errors")

    # ==================== CHAT ====================

    async def send_message(self, code: str, message: ChatMessage) -> None:
        await self._request("POST", "/api/send_message", json={"code": code, "message": message.to_wire()})

    async def delete_message(self, code: str, message_id: str, requester_id: str) -> None:
        await self._request(
            "POST",
            "/api/delete_message",
            json={"code": code, "messageId": message_id, "senderId": requester_id},
        )

    async def set_chat_lock(self, code: str, locked: bool, requester_id: str) -> None:
        await self._request(
            "POST",
            "/api/toggle_lock",
            json={"code": code, "isLocked": locked, "senderId": requester_id},
        )

    # ==================== AUTH ====================

    async def login(self, password: str) -> bool:
        try:
            await self._request("POST", "/api/login", json={"password": password})
        except (ValidationError, Forbidden):
            return False
        return True


def _json_body(response: httpx.Response):
    """Decode a success reply; a non-JSON body (proxy or portal page) counts as a network failure"""
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Non-JSON reply from {response.request.url.path} (HTTP {response.status_code})")
        raise TransientNetworkError(f"Registry returned a non-JSON reply for {response.request.url.path}")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"HTTP {response.status_code}"


async def share_class(store, client: SyncClient, class_id: str) -> str:
    """
    Publish one owned class and record the new code locally.

    When re-sharing, chat messages and the lock flag are first refreshed from
    the current registry entry so they carry over to the new code.
    """
    school_class = store.get_class(class_id)
    if school_class.share_code:
        try:
            current = await client.fetch(school_class.share_code)
        except NotFound:
            logger.info(f"Previous code {school_class.share_code} no longer resolves, sharing local copy")
        else:
            def _refresh(cls):
                cls.messages = list(current.messages)
                cls.is_chat_locked = current.is_chat_locked

            store.update_class(class_id, _refresh)
            school_class = store.get_class(class_id)

    code = await client.publish(school_class)
    store.set_share_code(class_id, code)
    return code


async def join_class(store, client: SyncClient, code: str) -> ClassSnapshot:
    """Fetch a shared class for viewer mode and remember its code for quick re-join"""
    snapshot = await client.fetch(code)
    store.remember_code(code, snapshot.name)
    return snapshot
