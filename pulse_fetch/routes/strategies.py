"""Strategy memory API endpoints."""
from fastapi import APIRouter, HTTPException, Query

from ..models import StrategyListResponse
from ..agents import orchestrator
from ..utils.logger import logger

router = APIRouter(prefix="/api/strategies", tags=["strategies"])


@router.get("", response_model=StrategyListResponse)
async def list_strategies() -> StrategyListResponse:
    """List learned strategy preferences.

    Returns:
        Memory entries in recency order (most recently learned last)
    """
    try:
        entries = await orchestrator.store.load_all()
        return StrategyListResponse(entries=entries, total=len(entries))

    except Exception as e:
        logger.error(f"Error listing strategies: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("")
async def forget_strategy(
    prefix: str = Query(..., min_length=1, description="Prefix of the entry to remove")
) -> dict:
    """Remove a learned strategy preference.

    Args:
        prefix: Exact prefix of the entry

    Returns:
        Success message
    """
    try:
        deleted = await orchestrator.store.delete(prefix)
    except Exception as e:
        logger.error(f"Error removing strategy for {prefix}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail=f"No strategy remembered for {prefix}")
    return {"message": f"Strategy for {prefix} removed"}
