"""Tool catalog endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_pipeline
from app.core.errors import ConfigurationError
from app.core.logging import get_logger
from app.core.report_pipeline import ReportPipeline
from app.core.schemas_intelligence import BudgetBand, Segment

logger = get_logger(__name__)

router = APIRouter(prefix="/intelligence")


@router.get("/stats")
async def intelligence_stats(pipeline: ReportPipeline = Depends(get_pipeline)) -> dict[str, Any]:
    """Local catalog counts plus which providers are configured."""
    return {
        "catalog": pipeline.store.stats() if pipeline.store else None,
        "providers": pipeline.handles.available(),
        "retrieval_chain": pipeline.retriever.strategy_names,
    }


@router.get("/search")
async def search_tools(
    q: str = Query(..., min_length=1, description="Free-text query"),
    segment: Segment | None = Query(None),
    budget: BudgetBand | None = Query(None),
    limit: int = Query(10, ge=1, le=50),
    pipeline: ReportPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    """
    Search tools through the retrieval chain.

    Returns:
        Matches with similarity scores and the tier that produced them
    """
    options = pipeline.retriever.options(
        segment_filter=segment, budget_filter=budget, match_count=limit
    )
    try:
        result = await pipeline.retriever.search(q, options)
    except ConfigurationError as e:
        logger.error(f"Tool search unavailable: {e}")
        raise HTTPException(
            status_code=503, detail={"message": str(e), "stage": "retrieval"}
        ) from e

    return {
        "source": result.source.value if result.source else None,
        "tools": [
            {
                "name": m.name,
                "similarity": m.similarity,
                "category": m.tool.category,
                "capability_layer": m.tool.capability_layer.value
                if m.tool.capability_layer
                else None,
                "pricing": m.tool.pricing.details,
            }
            for m in result.matches[:limit]
        ],
    }
