from fastapi import APIRouter, HTTPException, Depends
import secrets
import logging
from models.register_models import LoginRequest
from utils.config import get_settings

router = APIRouter(tags=["auth"])

@router.post("/login")
async def login(credentials: LoginRequest, config = Depends(get_settings)):
    """Check the shared teacher password. The core only relies on the teacher identity 'teacher'."""
    if secrets.compare_digest(credentials.password.encode(), config.teacher_password.encode()):
        return {"success": True}

    logging.warning("Teacher login failed: invalid password")
    raise HTTPException(status_code=401, detail="Invalid password")
