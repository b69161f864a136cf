"""FastAPI application entry point for the Brand RAG engine."""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from brandrag.api import router as api_router

VERSION = "0.1.0"

app = FastAPI(
    title="Brand RAG Engine",
    description="Personalized retrieval and ranking of brand content for generation",
    version=VERSION,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness probe. Does not touch the vector index or embedding provider."""
    return JSONResponse(content={"status": "ok", "service": "brandrag", "version": VERSION})


app.include_router(api_router, prefix="/v1")
