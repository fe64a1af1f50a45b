"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from peerlearn.core.config import settings
from peerlearn.core.database import init_db, close_db
from peerlearn.core.errors import AppError, UpstreamError
from peerlearn.api.auth import router as auth_router
from peerlearn.api.users import router as users_router
from peerlearn.api.hubs import router as hubs_router
from peerlearn.api.activities import router as activities_router
from peerlearn.api.roadmaps import router as roadmaps_router
from peerlearn.api.sessions import router as sessions_router
from peerlearn.api.ratings import router as ratings_router
from peerlearn.api.trainers import router as trainers_router
from peerlearn.api.messages import router as messages_router
from peerlearn.api.chat import router as chat_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)...", settings.APP_NAME, settings.ENVIRONMENT)
    init_db()
    yield
    logger.info("Shutting down %s...", settings.APP_NAME)
    close_db()

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors raised by the service layer."""
    content = {"message": exc.message, **exc.extra}
    if isinstance(exc, UpstreamError) and exc.status is not None:
        content["upstream_status"] = exc.status
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    if settings.is_development() and exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    content = {"message": "Validation error"}
    if settings.is_development():
        content["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    message = "An internal error occurred" if settings.is_production() else str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": message})

@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT}

prefix = settings.API_PREFIX
app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
app.include_router(users_router, prefix=f"{prefix}/users", tags=["users"])
app.include_router(hubs_router, prefix=f"{prefix}/hubs", tags=["hubs"])
app.include_router(activities_router, prefix=f"{prefix}/activities", tags=["activities"])
app.include_router(roadmaps_router, prefix=f"{prefix}/roadmaps", tags=["roadmaps"])
app.include_router(sessions_router, prefix=f"{prefix}/sessions", tags=["sessions"])
app.include_router(ratings_router, prefix=f"{prefix}/ratings", tags=["ratings"])
app.include_router(trainers_router, prefix=f"{prefix}/trainers", tags=["trainers"])
app.include_router(messages_router, prefix=f"{prefix}/messages", tags=["messages"])
app.include_router(chat_router, tags=["chat"])
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "peerlearn.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
