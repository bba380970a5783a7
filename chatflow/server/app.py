"""FastAPI app creation, CORS, global state, and helper functions."""

import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from .. import __version__
from ..app import ChatFlow
from ..workflow.config import ConfigError
from ..workflow.loader import WorkflowLoadError, WorkflowValidationError

logger = logging.getLogger(__name__)

_config_path = os.getenv("CHATFLOW_CONFIG", "config.yaml")

_flow: Optional[ChatFlow] = None


def _load_flow() -> ChatFlow:
    """Build ChatFlow from the config file, or from defaults when there is none."""
    if os.path.exists(_config_path):
        flow = ChatFlow(_config_path)
        logger.info(f"ChatFlow loaded from {_config_path}")
    else:
        logger.warning(f"Config not found: {_config_path}. Using built-in workflows only.")
        flow = ChatFlow()
    return flow


def require_flow() -> ChatFlow:
    """Return the ChatFlow instance, loading it on first use. 503 if config is broken."""
    global _flow
    if _flow is None:
        try:
            _flow = _load_flow()
        except (ConfigError, WorkflowLoadError, WorkflowValidationError) as e:
            logger.error(f"Failed to load config {_config_path}: {e}")
            raise HTTPException(503, f"Invalid configuration: {e}")
    return _flow


def set_flow(flow: Optional[ChatFlow]):
    """Install a ChatFlow instance (embedding apps register their capabilities first)."""
    global _flow
    _flow = flow


def get_flow_instance() -> Optional[ChatFlow]:
    return _flow


# ── Optional API key authentication ──

_API_KEY = os.getenv("CHATFLOW_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key_header_value: Optional[str] = Security(_api_key_header),
):
    """Verify API key from Authorization: Bearer <key> or X-API-Key header.

    When CHATFLOW_API_KEY is not set, all requests are allowed (dev mode).
    """
    if _API_KEY is None:
        return None

    if api_key_header_value and api_key_header_value == _API_KEY:
        return api_key_header_value

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        if token == _API_KEY:
            return token

    raise HTTPException(401, "Invalid or missing API key")


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="ChatFlow", version=__version__)

    allowed_origins_str = os.getenv(
        "CHATFLOW_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    )
    allowed_origins = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if _API_KEY is None:
        logger.warning(
            "CHATFLOW_API_KEY is not set. API endpoints are unauthenticated. "
            "Set CHATFLOW_API_KEY environment variable to enable authentication."
        )

    @_api.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
