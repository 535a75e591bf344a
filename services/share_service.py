"""Share Service - server-side handling of published class snapshots and their chat"""
import logging
import random
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from models.register_models import ClassSnapshot, ChatMessage, SCHEMA_VERSION, TEACHER_ID, now_ms
from services.errors import CodeExpired, Forbidden, NotFound, RegisterError, ValidationError
from utils.config import Settings

logger = logging.getLogger(__name__)

# Uppercase letters and digits without the look-alikes 0/O and 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 10


def generate_share_code() -> str:
    return ''.join(random.choices(CODE_ALPHABET, k=CODE_LENGTH))


def normalize_code(code: Optional[str]) -> str:
    code = (code or "").strip().upper()
    if not code:
        raise ValidationError("Code is required")
    return code


async def publish_snapshot(registry, data, config: Settings) -> str:
    """
    Store a full class snapshot under a freshly generated code.

    Every call creates a new entry. The entry named by the snapshot's previous
    share code is only removed when the supersede policy is enabled and it
    belongs to the same class; otherwise it keeps serving its frozen snapshot.

    Returns:
        str: the new share code
    """
    if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
        raise ValidationError("Invalid class data")
    try:
        snapshot = ClassSnapshot.model_validate(data)
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid class data: {e.error_count()} errors")

    previous_code = snapshot.share_code
    snapshot.schema_version = SCHEMA_VERSION
    snapshot.shared_at = now_ms()

    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_share_code()
        snapshot.share_code = code
        if await registry.create(code, snapshot.to_wire()):
            break
        logger.info(f"Share code {code} already taken, retrying")
    else:
        raise RegisterError("Failed to generate code")

    logger.info(f"Class {snapshot.id} shared under code {code}")

    if config.supersede_old_codes and previous_code and previous_code.upper() != code:
        old = await registry.get(previous_code.upper())
        if old and old.get("id") == snapshot.id:
            await registry.delete(previous_code.upper())
            logger.info(f"Superseded share code {previous_code.upper()} for class {snapshot.id}")

    return code


async def view_snapshot(registry, code: Optional[str], config: Settings) -> ClassSnapshot:
    code = normalize_code(code)
    doc = await registry.get(code)
    if not doc:
        raise NotFound("Code not found or expired")

    if config.share_ttl_minutes and doc.get("_sharedAt"):
        age_ms = now_ms() - doc["_sharedAt"]
        if age_ms > config.share_ttl_minutes * 60 * 1000:
            await registry.delete(code)
            logger.info(f"Share code {code} expired and was removed")
            raise CodeExpired("Code expired")

    try:
        return ClassSnapshot.model_validate(doc)
    except SchemaValidationError as e:
        logger.error(f"Stored snapshot for {code} is unreadable: {str(e)}")
        raise RegisterError("Stored class data is corrupt")


async def post_message(registry, code: str, message: ChatMessage) -> None:
    code = normalize_code(code)
    await registry.append_message(code, message.to_wire())
    logger.info(f"Message {message.id} from {message.sender_id} posted to {code}")


async def remove_message(registry, code: str, message_id: str, requester_id: str) -> None:
    code = normalize_code(code)
    await registry.remove_message(code, message_id, requester_id)
    logger.info(f"Message {message_id} deleted from {code} by {requester_id}")


async def toggle_lock(registry, code: str, locked: bool, requester_id: str) -> None:
    code = normalize_code(code)
    if requester_id != TEACHER_ID:
        raise Forbidden("Unauthorized")
    await registry.set_lock(code, locked)
    logger.info(f"Chat for {code} {'locked' if locked else 'unlocked'}")
