"""Dashboard routes: overview, notifications, health, security and sample analytics."""

from fastapi import APIRouter, Depends, HTTPException, Query

from ...auth.rbac import PERM_VIEW_DASHBOARD, require_permission
from ...dependencies import Pagination, get_dashboard_service, get_pagination
from ..responses import ok

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/overview")
async def overview(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_overview(current_user["sub"]))


@router.get("/stats")
async def stats(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_stats())


@router.get("/activity")
async def recent_activity(
    paging: Pagination = Depends(get_pagination),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_dashboard_service().get_recent_activity(paging.limit, paging.page))


# --- Notifications ---

@router.get("/notifications")
async def notifications(
    paging: Pagination = Depends(get_pagination),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_dashboard_service().get_notifications(current_user["sub"], paging.limit, paging.page))


@router.get("/notifications/unread")
async def unread_notifications(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    count = await get_dashboard_service().get_unread_notifications(current_user["sub"])
    return ok({"count": count})


@router.put("/notifications/read-all")
async def mark_all_read(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    updated = await get_dashboard_service().mark_all_notifications_read(current_user["sub"])
    return ok({"updated": updated})


@router.put("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_dashboard_service().mark_notification_read(current_user["sub"], notification_id))


# --- System and security ---

@router.get("/system/health")
async def system_health(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_system_health())


@router.get("/system/metrics")
async def system_metrics(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_system_metrics())


@router.get("/security/status")
async def security_status(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_security_status())


@router.get("/security/alerts")
async def security_alerts(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_security_alerts())


# --- Sample analytics ---

@router.get("/analytics/chart")
async def chart_data(
    type: str = "line",
    time_range: str = Query("7d", pattern="^(7d|30d|90d)$"),
    metric: str = "views",
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(get_dashboard_service().get_chart_data(type, time_range, metric))


@router.get("/analytics/realtime")
async def realtime(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(get_dashboard_service().get_real_time_analytics())


@router.get("/analytics/traffic-sources")
async def traffic_sources(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(get_dashboard_service().get_traffic_sources())


@router.get("/analytics/content-performance")
async def content_performance(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_dashboard_service().get_content_performance())


@router.get("/widgets")
async def widgets(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(get_dashboard_service().get_widgets())


@router.get("/widgets/{widget_id}")
async def widget(widget_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    found = get_dashboard_service().get_widget(widget_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Widget not found")
    return ok(found)


@router.get("/quick-actions")
async def quick_actions(current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(get_dashboard_service().get_quick_actions())
