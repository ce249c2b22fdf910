"""
FastAPI service exposing a ModelHost over HTTP.

``/rpc`` accepts the same message envelopes as the in-process channel, so
an ``HttpChannel`` session sees no difference between the two transports.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..embeddings.encoders import build_encoder
from .host import ModelHost


class EmbedRequest(BaseModel):
    """Request model for direct embedding calls."""

    text: str


def create_app(host: ModelHost) -> FastAPI:
    """Build the service around *host*; the model starts loading on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        host.start()
        yield

    app = FastAPI(
        title="SemanticFind model host",
        description="Embedding backend for semantic page search",
        lifespan=lifespan,
    )
    app.state.host = host

    @app.get("/health")
    async def health():
        return {"status": "ok", "host": host.name}

    @app.get("/api/status")
    async def model_status():
        """Report model readiness and load progress."""
        return host.status_payload()

    @app.post("/api/embed")
    async def embed_text(request: EmbedRequest):
        if not request.text:
            return JSONResponse({"error": "No text provided"}, status_code=400)
        try:
            embedding = await host.embed(request.text)
        except Exception as exc:
            return JSONResponse({"error": str(exc)}, status_code=503)
        return {"embedding": embedding, "model": host.encoder.model_id}

    @app.post("/rpc")
    async def rpc(message: dict[str, Any]):
        """Dispatch a raw message envelope to the host."""
        if message.get("target", host.name) != host.name:
            return JSONResponse(
                {"id": message.get("id"), "error": "Unknown target", "success": False},
                status_code=404,
            )
        return await host.handle_message(message)

    return app


def run_server(host: str = "127.0.0.1", port: int = 8000, encoder: str = "minilm"):
    """Run the model host service."""
    import uvicorn

    uvicorn.run(create_app(ModelHost(build_encoder(encoder))), host=host, port=port)
