from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from taskhub.core.config import settings
from taskhub.core.database import engine, Base
from taskhub.core.exceptions import (
    CacheUnavailableError,
    ChannelConnectionError,
    DuplicateEmailError,
    NotFoundError,
)
from taskhub.core.logging_setup import setup_logging
from taskhub.deps import close_broker
from taskhub.routers import projects, tasks, users
import taskhub.models  # noqa: F401  registers tables on Base.metadata

logger = structlog.get_logger(__name__)

app = FastAPI(title="Taskhub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tasks.router)
app.include_router(users.router)
app.include_router(projects.router)

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

@app.exception_handler(DuplicateEmailError)
async def duplicate_email_handler(request: Request, exc: DuplicateEmailError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

@app.exception_handler(CacheUnavailableError)
@app.exception_handler(ChannelConnectionError)
async def unavailable_handler(request: Request, exc: Exception):
    logger.error("dependency_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

@app.on_event("startup")
def startup():
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("api_started", port=settings.API_PORT)

@app.on_event("shutdown")
def shutdown():
    close_broker()

@app.get("/")
def root():
    return {"message": "Taskhub API is running"}

def run(host: str = "0.0.0.0", port: int | None = None):
    import uvicorn

    uvicorn.run(app, host=host, port=port or settings.API_PORT)
