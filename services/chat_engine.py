"""
Chat Merge Engine - one ordered chat view combining the registry's message list
with messages this client sent optimistically.

The view is rebuilt from the last polled server list plus local messages the
server list does not contain yet, matched by message id. A local message is
tracked until a poll that started after its send was confirmed has been
applied; from then on the server list alone decides whether it is shown.
Deletions are tracked the same way so a poll that raced a delete cannot bring
the message back.
"""
import asyncio
import base64
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from models.register_models import ChatMessage, TEACHER_ID, now_ms
from services.errors import Forbidden, NotFound, RegisterError, ValidationError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3.0
MAX_ATTACHMENT_BYTES = 500 * 1024


def new_message_id() -> str:
    return f"{now_ms()}-{uuid.uuid4().hex[:8]}"


@dataclass
class _LocalMessage:
    message: ChatMessage
    pending: bool = True
    confirmed_at_poll: Optional[int] = None


class ChatSession:
    def __init__(
        self,
        client,
        code: str,
        sender_id: str,
        sender_name: str,
        *,
        messages: Optional[List[ChatMessage]] = None,
        is_chat_locked: bool = False,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.client = client
        self.code = code
        self.sender_id = sender_id
        self.sender_name = sender_name
        self.is_chat_locked = is_chat_locked
        self.poll_interval = poll_interval

        self._server_messages: List[ChatMessage] = list(messages or [])
        self._local: Dict[str, _LocalMessage] = {}
        # message id -> poll number after which the delete is visible server-side (None while in flight)
        self._deleted: Dict[str, Optional[int]] = {}
        self._polls_started = 0
        self._last_applied_poll = 0
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def for_class(cls, client, school_class, sender_id: str, sender_name: str, **kwargs) -> "ChatSession":
        if not school_class.share_code:
            raise ValidationError("Class has not been shared yet")
        return cls(
            client,
            school_class.share_code,
            sender_id,
            sender_name,
            messages=school_class.messages,
            is_chat_locked=school_class.is_chat_locked,
            **kwargs,
        )

    # ==================== VIEW ====================

    @property
    def is_teacher(self) -> bool:
        return self.sender_id == TEACHER_ID

    @property
    def messages(self) -> List[ChatMessage]:
        """Merged view: server messages first, then local ones the server has not returned yet"""
        seen = set()
        merged = []
        for msg in self._server_messages:
            if msg.id in self._deleted or msg.id in seen:
                continue
            seen.add(msg.id)
            merged.append(msg)
        for msg_id, local in self._local.items():
            if msg_id not in seen and msg_id not in self._deleted:
                seen.add(msg_id)
                merged.append(local.message)
        return merged

    def is_pending(self, message_id: str) -> bool:
        local = self._local.get(message_id)
        return bool(local and local.pending)

    @property
    def can_send(self) -> bool:
        return self.is_teacher or not self.is_chat_locked

    def can_delete(self, message: ChatMessage) -> bool:
        return self.is_teacher or message.sender_id == self.sender_id

    # ==================== POLLING ====================

    async def poll(self) -> bool:
        """
        Refresh from the registry once.

        A failed fetch is logged and leaves messages and lock state untouched.
        Returns whether the poll was applied.
        """
        self._polls_started += 1
        poll_number = self._polls_started
        try:
            snapshot = await self.client.fetch(self.code)
        except RegisterError as e:
            logger.warning(f"Polling error for {self.code}: {e.message}")
            return False

        if poll_number < self._last_applied_poll:
            # An older poll finished after a newer one was applied
            return False
        self._last_applied_poll = poll_number

        self._server_messages = list(snapshot.messages)
        self.is_chat_locked = snapshot.is_chat_locked

        server_ids = {m.id for m in self._server_messages}
        for msg_id, local in list(self._local.items()):
            if local.pending:
                continue
            if msg_id in server_ids or poll_number > local.confirmed_at_poll:
                del self._local[msg_id]
        for msg_id, deleted_after in list(self._deleted.items()):
            if deleted_after is not None and poll_number > deleted_after:
                del self._deleted[msg_id]
        return True

    async def _run(self) -> None:
        while True:
            try:
                await self.poll()
            except Exception as e:
                logger.error(f"Unexpected polling error for {self.code}: {str(e)}")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        """Begin polling every poll_interval seconds, starting immediately"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    # ==================== ACTIONS ====================

    async def send(
        self,
        content: str = "",
        *,
        type: str = "text",
        file_url: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> ChatMessage:
        """
        Send a message optimistically.

        The message is visible (pending) before the network call; on failure it
        is removed again and the error is raised to the caller.
        """
        if not content.strip() and not file_url:
            raise ValidationError("Message is empty")
        if not self.can_send:
            raise Forbidden("Chat is locked by teacher")

        message = ChatMessage(
            id=new_message_id(),
            sender_id=self.sender_id,
            sender_name=self.sender_name,
            content=content,
            type=type,
            file_url=file_url,
            file_name=file_name,
        )
        self._local[message.id] = _LocalMessage(message)

        try:
            await self.client.send_message(self.code, message)
        except RegisterError as e:
            self._local.pop(message.id, None)
            logger.error(f"Failed to send message {message.id}: {e.message}")
            raise

        local = self._local.get(message.id)
        if local is not None:
            local.pending = False
            local.confirmed_at_poll = self._polls_started
        return message

    async def send_file(self, file_name: str, data: bytes, mime_type: str) -> ChatMessage:
        """Send a small attachment inline as a data URL"""
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise ValidationError("File too large. Max 500KB.")
        file_url = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
        kind = "image" if mime_type.startswith("image/") else "file"
        return await self.send("", type=kind, file_url=file_url, file_name=file_name)

    async def delete(self, message_id: str) -> None:
        """Delete a message, hiding it immediately and restoring it if the registry refuses"""
        message = next((m for m in self.messages if m.id == message_id), None)
        if message is None:
            raise NotFound("Message not found")
        if not self.can_delete(message):
            raise Forbidden("Only the teacher or the sender can delete this message")
        if self.is_pending(message_id):
            # The registry may not have it yet, so a delete now would be lost
            raise ValidationError("Message is still sending")

        self._deleted[message_id] = None
        try:
            await self.client.delete_message(self.code, message_id, self.sender_id)
        except NotFound:
            # Already gone server-side; the next poll confirms it
            self._deleted[message_id] = self._polls_started
            return
        except RegisterError as e:
            self._deleted.pop(message_id, None)
            logger.error(f"Failed to delete message {message_id}: {e.message}")
            raise

        self._deleted[message_id] = self._polls_started
        self._local.pop(message_id, None)

    async def set_lock(self, locked: bool) -> None:
        """Teacher-only lock toggle, applied locally first and reverted on failure"""
        if not self.is_teacher:
            raise Forbidden("Only the teacher can lock the chat")

        previous = self.is_chat_locked
        self.is_chat_locked = locked
        try:
            await self.client.set_chat_lock(self.code, locked, self.sender_id)
        except RegisterError as e:
            self.is_chat_locked = previous
            logger.error(f"Failed to {'lock' if locked else 'unlock'} chat {self.code}: {e.message}")
            raise
