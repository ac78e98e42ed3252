"""Saved resource API endpoints."""
from fastapi import APIRouter, HTTPException, Path

from ..models import ResourceListResponse, ResourceResponse
from ..services import resource_storage
from ..utils.logger import logger

router = APIRouter(prefix="/api/resources", tags=["resources"])


@router.get("", response_model=ResourceListResponse)
async def list_resources() -> ResourceListResponse:
    """List saved scrape results.

    Returns:
        Resources without their text, newest first
    """
    try:
        resources = resource_storage.list()
        return ResourceListResponse(resources=resources, total=len(resources))

    except Exception as e:
        logger.error(f"Error listing resources: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{resource_id}", response_model=ResourceResponse)
async def get_resource(
    resource_id: str = Path(..., description="Resource identifier")
) -> ResourceResponse:
    """Get a saved scrape result with its full text.

    Args:
        resource_id: Resource identifier

    Returns:
        Resource details

    Raises:
        HTTPException: If the resource is not found
    """
    try:
        resource = resource_storage.get(resource_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not resource:
        raise HTTPException(status_code=404, detail=f"Resource {resource_id} not found")
    return resource


@router.delete("/{resource_id}")
async def delete_resource(
    resource_id: str = Path(..., description="Resource identifier")
) -> dict:
    """Delete a saved scrape result.

    Args:
        resource_id: Resource identifier

    Returns:
        Success message
    """
    try:
        deleted = resource_storage.delete(resource_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Resource {resource_id} not found")

    logger.info(f"Resource deleted: {resource_id}")
    return {"message": f"Resource {resource_id} deleted successfully"}
