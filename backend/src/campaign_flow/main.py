"""FastAPI application entry - Campaign Sequence Flow editor."""

from . import config  # noqa: F401 - load .env on startup
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import router
from .flow.errors import (
    DuplicateIdError,
    FlowError,
    MigrationInProgressError,
    NotFoundError,
    SaveConflictError,
)

_STATUS_BY_ERROR: tuple[tuple[type[FlowError], int], ...] = (
    (NotFoundError, 404),
    (DuplicateIdError, 409),
    (MigrationInProgressError, 409),
    (SaveConflictError, 409),
)

app = FastAPI(
    title="Campaign Sequence Flow",
    description="Author branching email sequences as graphs and compile them to backend steps",
    version="0.1.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


@app.exception_handler(FlowError)
async def flow_error_handler(request: Request, exc: FlowError):
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": exc.code})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/")
async def root():
    return {"service": "campaign-sequence-flow", "docs": "/docs"}
