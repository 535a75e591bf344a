"""Routes for sharing a class register under a code, viewing it and chatting on it"""
from fastapi import APIRouter, HTTPException, Depends, Request
from typing import Optional
import json
import logging

from models.register_models import SendMessageRequest, DeleteMessageRequest, ToggleLockRequest
from services import share_service
from services.errors import RegisterError
from utils.config import get_settings
from utils.database import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["share"])


def _to_http(e: RegisterError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/share")
async def share_class(request: Request, registry = Depends(get_registry), config = Depends(get_settings)):
    """Publish a full class snapshot and return its new access code"""
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid class data")

    try:
        code = await share_service.publish_snapshot(registry, data, config)
    except RegisterError as e:
        raise _to_http(e)
    except Exception as e:
        logging.error(f"Share failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate code")

    return {"code": code}


@router.get("/view")
async def view_class(code: Optional[str] = None, registry = Depends(get_registry), config = Depends(get_settings)):
    """Fetch the snapshot stored under a code (case-insensitive)"""
    try:
        snapshot = await share_service.view_snapshot(registry, code, config)
    except RegisterError as e:
        raise _to_http(e)
    except Exception as e:
        logging.error(f"View failed for {code}: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return snapshot.to_wire()


@router.post("/send_message")
async def send_message(payload: SendMessageRequest, registry = Depends(get_registry)):
    """Append one chat message; non-teacher senders are refused while chat is locked"""
    try:
        await share_service.post_message(registry, payload.code, payload.message)
    except RegisterError as e:
        raise _to_http(e)
    except Exception as e:
        logging.error(f"Send message failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return {"success": True}


@router.post("/delete_message")
async def delete_message(payload: DeleteMessageRequest, registry = Depends(get_registry)):
    """Hard-delete a message; allowed for the teacher and the original sender"""
    try:
        await share_service.remove_message(registry, payload.code, payload.message_id, payload.sender_id)
    except RegisterError as e:
        raise _to_http(e)
    except Exception as e:
        logging.error(f"Delete message failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return {"success": True}


@router.post("/toggle_lock")
async def toggle_lock(payload: ToggleLockRequest, registry = Depends(get_registry)):
    try:
        await share_service.toggle_lock(registry, payload.code, payload.is_locked, payload.sender_id)
    except RegisterError as e:
        raise _to_http(e)
    except Exception as e:
        logging.error(f"Toggle lock failed: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal Server Error")

    return {"success": True}
