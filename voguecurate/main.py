"""FastAPI application entrypoint for the VogueCurate backend."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from voguecurate.api.routes import api_router
from voguecurate.core.config import get_settings
from voguecurate.services.workspace import build_workspace


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The archive is loaded exactly once per process, here.
    if getattr(app.state, "workspace", None) is None:
        app.state.workspace = await build_workspace(get_settings())
    yield


app = FastAPI(title="VogueCurate API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


class HealthResponse(BaseModel):
    status: str = "ok"


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check() -> HealthResponse:
    """Return service health information for monitoring and load-balancers."""
    return HealthResponse()
