"""Recently captured tracking requests for the calling user."""

from fastapi import APIRouter, Depends, Query

from backend.app.core.security import CurrentUser, get_current_user
from backend.app.middleware.request_capture import RequestCaptureStore, get_request_capture

router = APIRouter()


@router.get("/requests")
async def recent_requests(
    limit: int = Query(50, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    capture: RequestCaptureStore = Depends(get_request_capture),
):
    requests = capture.recent(current_user.id, limit)
    return {"requests": requests, "count": len(requests)}


@router.delete("/requests")
async def clear_requests(
    current_user: CurrentUser = Depends(get_current_user),
    capture: RequestCaptureStore = Depends(get_request_capture),
):
    capture.clear(current_user.id)
    return {"success": True}
