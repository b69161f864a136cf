"""API endpoints for personalized retrieval and the RAG quality harness."""

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from brandrag.core.logging import get_logger
from brandrag.core.rag_quality import UnknownScenarioError, run_quality_checks
from brandrag.core.retrieval import RetrievalError, build_default_retriever
from brandrag.core.schemas_retrieval import RetrieveRequest

logger = get_logger(__name__)

router = APIRouter()


@router.post("/retrieve")
async def retrieve_context(request: RetrieveRequest) -> dict:
    """
    Retrieve a personalized context for a query.

    Args:
        request: Query, intent classification and optional user context

    Returns:
        RAGContext as camelCase JSON

    Raises:
        HTTPException 422: If intent.entities.userContext is malformed
        HTTPException 502: If embedding or vector search fails
    """
    try:
        retriever = build_default_retriever()
        context = await retriever.retrieve(request.query, request.intent, request.user_context)
        return context.model_dump(by_alias=True)

    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid intent.entities.userContext: {e.error_count()} validation errors",
        ) from e
    except RetrievalError as e:
        logger.error(f"Retrieval failed at {e.stage}: {e}")
        raise HTTPException(status_code=502, detail=f"Upstream {e.stage} failure") from e


@router.get("/rag-quality")
async def rag_quality(
    test: str | None = Query(None, description="Scenario id or improvement name to run"),
    verbose: bool = Query(False, description="Include top results per scenario"),
) -> dict:
    """
    Run the RAG quality scenarios against the live index.

    Raises:
        HTTPException 404: If no scenario matches `test`
        HTTPException 502: If embedding or vector search fails
    """
    try:
        report = await run_quality_checks(build_default_retriever(), test=test, verbose=verbose)
        return report.model_dump()

    except UnknownScenarioError as e:
        raise HTTPException(
            status_code=404,
            detail={"error": "No matching tests found", "availableTests": e.available},
        ) from e
    except RetrievalError as e:
        logger.error(f"RAG quality check failed at {e.stage}: {e}")
        raise HTTPException(status_code=502, detail=f"Upstream {e.stage} failure") from e
