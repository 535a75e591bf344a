"""
Share registry: maps a short access code to a full class snapshot.

Besides whole-snapshot create/get/put/delete, the registry exposes field-level
operations (append/remove a chat message, set the lock flag) that are applied
atomically per code, so concurrent chat writers never overwrite each other's
updates.
"""
import asyncio
import copy
import logging
from typing import Dict, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from models.register_models import TEACHER_ID
from services.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)


def _check_delete_allowed(doc: Optional[dict], message_id: str, requester_id: str) -> dict:
    """Raise the error a delete should fail with; return the message if allowed"""
    if not doc:
        raise NotFound("Class not found")
    message = next((m for m in doc.get("messages") or [] if m.get("id") == message_id), None)
    if message is None:
        raise NotFound("Message not found")
    if requester_id != TEACHER_ID and requester_id != message.get("senderId"):
        raise Forbidden("Only the teacher or the sender can delete this message")
    return message


class MemoryShareRegistry:
    """In-process registry; writers to the same code are serialized by a per-code lock"""

    def __init__(self):
        self._entries: Dict[str, dict] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, code: str) -> asyncio.Lock:
        if code not in self._locks:
            self._locks[code] = asyncio.Lock()
        return self._locks[code]

    async def create(self, code: str, snapshot: dict) -> bool:
        async with self._lock(code):
            if code in self._entries:
                return False
            self._entries[code] = copy.deepcopy(snapshot)
            return True

    async def get(self, code: str) -> Optional[dict]:
        doc = self._entries.get(code)
        return copy.deepcopy(doc) if doc is not None else None

    async def put(self, code: str, snapshot: dict) -> None:
        async with self._lock(code):
            self._entries[code] = copy.deepcopy(snapshot)

    async def delete(self, code: str) -> bool:
        async with self._lock(code):
            removed = self._entries.pop(code, None) is not None
        self._locks.pop(code, None)
        return removed

    async def append_message(self, code: str, message: dict) -> None:
        async with self._lock(code):
            doc = self._entries.get(code)
            if doc is None:
                raise NotFound("Class not found")
            if doc.get("isChatLocked") and message.get("senderId") != TEACHER_ID:
                raise Forbidden("Chat is locked by teacher")
            doc.setdefault("messages", []).append(copy.deepcopy(message))

    async def remove_message(self, code: str, message_id: str, requester_id: str) -> None:
        async with self._lock(code):
            doc = self._entries.get(code)
            _check_delete_allowed(doc, message_id, requester_id)
            doc["messages"] = [m for m in doc["messages"] if m.get("id") != message_id]

    async def set_lock(self, code: str, locked: bool) -> None:
        async with self._lock(code):
            doc = self._entries.get(code)
            if doc is None:
                raise NotFound("Class not found")
            doc["isChatLocked"] = locked

    async def close(self) -> None:
        pass


class MongoShareRegistry:
    """Registry backed by one MongoDB collection, one document per code (_id = code)"""

    def __init__(self, db, collection: str = "shares"):
        self.collection = db[collection]

    @staticmethod
    def _strip(doc: Optional[dict]) -> Optional[dict]:
        if doc is not None:
            doc.pop("_id", None)
        return doc

    async def create(self, code: str, snapshot: dict) -> bool:
        try:
            await self.collection.insert_one({**snapshot, "_id": code})
        except DuplicateKeyError:
            return False
        return True

    async def get(self, code: str) -> Optional[dict]:
        return self._strip(await self.collection.find_one({"_id": code}))

    async def put(self, code: str, snapshot: dict) -> None:
        await self.collection.replace_one({"_id": code}, {**snapshot, "_id": code}, upsert=True)

    async def delete(self, code: str) -> bool:
        result = await self.collection.delete_one({"_id": code})
        return result.deleted_count > 0

    async def append_message(self, code: str, message: dict) -> None:
        query = {"_id": code}
        if message.get("senderId") != TEACHER_ID:
            query["isChatLocked"] = {"$ne": True}

        result = await self.collection.update_one(query, {"$push": {"messages": message}})
        if result.matched_count:
            return

        # Nothing matched: either the code is unknown or the lock filtered us out
        if await self.collection.find_one({"_id": code}, {"_id": 1}):
            raise Forbidden("Chat is locked by teacher")
        raise NotFound("Class not found")

    async def remove_message(self, code: str, message_id: str, requester_id: str) -> None:
        match = {"id": message_id}
        if requester_id != TEACHER_ID:
            match["senderId"] = requester_id

        doc = await self.collection.find_one_and_update(
            {"_id": code, "messages": {"$elemMatch": match}},
            {"$pull": {"messages": {"id": message_id}}},
            projection={"_id": 1},
            return_document=ReturnDocument.BEFORE,
        )
        if doc is not None:
            return

        _check_delete_allowed(await self.collection.find_one({"_id": code}), message_id, requester_id)
        # The message vanished between the two reads
        raise NotFound("Message not found")

    async def set_lock(self, code: str, locked: bool) -> None:
        result = await self.collection.update_one({"_id": code}, {"$set": {"isChatLocked": locked}})
        if not result.matched_count:
            raise NotFound("Class not found")

    async def close(self) -> None:
        self.collection.database.client.close()
