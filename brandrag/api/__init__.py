"""API router for v1 endpoints."""

from fastapi import APIRouter

from brandrag.api import retrieval

router = APIRouter()

# Personalized retrieval + RAG quality harness
router.include_router(retrieval.router, tags=["retrieval"])
