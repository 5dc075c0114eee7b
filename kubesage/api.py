from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from kubesage import __version__
from kubesage.agents.assistant import build_orchestrator, build_registry
from kubesage.agents.orchestrator import EvaluatorOptimizer
from kubesage.config import load_config
from kubesage.llm.errors import LLMConfigurationError
from kubesage.plugins.registry import ToolRegistry
from kubesage.utils.logging import bind_request

logger = structlog.get_logger(__name__)

app = FastAPI(title="kubesage API", description="Natural-language assistant for Kubernetes clusters")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Global State ---
# Built once per process; the orchestrator keeps no per-request state.
_registry: Optional[ToolRegistry] = None
_orchestrator: Optional[EvaluatorOptimizer] = None

# --- Dependencies ---


def get_registry() -> ToolRegistry:
    global _registry
    if _registry is None:
        _registry = build_registry(load_config())
    return _registry


def get_orchestrator(registry: ToolRegistry = Depends(get_registry)) -> EvaluatorOptimizer:
    global _orchestrator
    if _orchestrator is None:
        try:
            _orchestrator = build_orchestrator(load_config(), registry=registry)
        except LLMConfigurationError as e:
            logger.error("Assistant is not configured", error=str(e))
            raise HTTPException(status_code=503, detail=str(e))
    return _orchestrator


# --- Endpoints ---


@app.get("/health", response_model=Dict[str, Any])
async def health():
    return {"status": "ok", "version": __version__}


@app.get("/api/v1/tools", response_model=List[str])
async def list_tools(registry: ToolRegistry = Depends(get_registry)):
    """List the cluster tools available to the assistant."""
    return registry.names()


@app.post("/api/v1/chat", response_class=HTMLResponse)
async def chat(request: Request, orchestrator: EvaluatorOptimizer = Depends(get_orchestrator)):
    """Answer a plain-text request with an HTML fragment.

    Failures inside the assistant are reported as an HTML error container
    with status 200; only an empty request is rejected.
    """
    body = (await request.body()).decode("utf-8", errors="replace").strip()
    if not body:
        raise HTTPException(status_code=400, detail="Request body must contain the question as plain text")

    request_id = bind_request(request.headers.get("x-request-id"))
    logger.info("Chat request received", chars=len(body))
    html = await orchestrator.invoke(body)
    return HTMLResponse(content=html, headers={"X-Request-ID": request_id})
