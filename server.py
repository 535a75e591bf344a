from fastapi import FastAPI, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from routes.share_routes import router as share_router
from routes.auth_routes import router as auth_router
from utils.config import settings
from utils.database import close_registry
from version import BUILD_VERSION

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Application starting up...")
    yield
    logger.info("Application shutting down...")
    await close_registry()

app = FastAPI(lifespan=lifespan)
api_router = APIRouter(prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment system"""
    return {
        "status": "healthy",
        "service": "attendance-register",
        "version": BUILD_VERSION
    }


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Missing or malformed fields are a plain 400 for registry clients
    missing = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    detail = f"Missing or invalid fields: {', '.join(missing)}" if missing else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


api_router.include_router(share_router)
api_router.include_router(auth_router)

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
