"""Category rule routes: rule CRUD, post analysis, rule execution and execution logs."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...auth.rbac import PERM_MANAGE_TAXONOMY, PERM_VIEW_DASHBOARD, require_permission
from ...config import JaCmsConfig
from ...dependencies import Pagination, get_app_config, get_category_rules_service, get_pagination
from ..responses import ok

router = APIRouter(prefix="/category-rules", tags=["category-rules"])


class Range(BaseModel):
    min: Optional[int] = Field(default=None, ge=0)
    max: Optional[int] = Field(default=None, ge=0)


class RuleConditions(BaseModel):
    keywords: list[str] = []
    title_patterns: list[str] = []
    content_types: list[str] = []
    minimum_matches: int = Field(default=1, ge=1)
    confidence: float = Field(ge=0, le=1)
    reading_time: Optional[Range] = None
    word_count: Optional[Range] = None


class CreateRuleRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category_id: str
    conditions: RuleConditions
    priority: int = 0
    is_active: bool = True


class UpdateRuleRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category_id: Optional[str] = None
    conditions: Optional[RuleConditions] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None


@router.get("/")
async def list_rules(
    category_id: Optional[str] = None,
    active_only: bool = False,
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_category_rules_service().get_rules(category_id, active_only))


@router.post("/", status_code=201)
async def create_rule(
    body: CreateRuleRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    rule = await get_category_rules_service().create_rule(
        body.model_dump(), created_by=current_user["sub"],
    )
    return ok(rule, "Category rule created successfully")


@router.get("/category/{category_id}")
async def category_rules(category_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_rules_service().get_category_rules(category_id))


@router.get("/analyze/post/{post_id}")
async def analyze_post(post_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_rules_service().analyze_post_content(post_id))


@router.post("/execute/post/{post_id}")
async def execute_for_post(
    post_id: str,
    apply: bool = False,
    config: JaCmsConfig = Depends(get_app_config),
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    """Evaluate active rules; with ``apply`` the best confident match also moves the post."""
    service = get_category_rules_service()
    if not apply:
        return ok(await service.execute_rules_for_post(post_id))
    assigned = await service.auto_categorize_post(post_id, config.rules_min_confidence)
    return ok({"assigned": assigned}, "Post categorized" if assigned else "No rule was confident enough")


@router.post("/execute/recent")
async def execute_for_recent_posts(
    hours: int = Query(24, ge=1),
    config: JaCmsConfig = Depends(get_app_config),
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    return ok(await get_category_rules_service().categorize_recent_posts(hours, config.rules_min_confidence))


@router.get("/logs/executions")
async def execution_logs(
    rule_id: Optional[str] = None,
    paging: Pagination = Depends(get_pagination),
    current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return ok(await get_category_rules_service().get_execution_logs(rule_id, paging.page, paging.limit))


@router.delete("/logs/cleanup")
async def cleanup_logs(
    days_to_keep: Optional[int] = Query(None, ge=1),
    config: JaCmsConfig = Depends(get_app_config),
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    deleted = await get_category_rules_service().cleanup_old_logs(days_to_keep or config.rules_log_retention_days)
    return ok({"deleted": deleted}, "Old execution logs removed")


@router.get("/{rule_id}/statistics")
async def rule_statistics(rule_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    return ok(await get_category_rules_service().get_rule_statistics(rule_id))


@router.get("/{rule_id}")
async def get_rule(rule_id: str, current_user: dict = Depends(require_permission(PERM_VIEW_DASHBOARD))):
    rule = await get_category_rules_service().get_rule_by_id(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Category rule not found")
    return ok(rule)


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    body: UpdateRuleRequest,
    current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY)),
):
    rule = await get_category_rules_service().update_rule(rule_id, body.model_dump(exclude_unset=True))
    return ok(rule, "Category rule updated successfully")


@router.delete("/{rule_id}")
async def delete_rule(rule_id: str, current_user: dict = Depends(require_permission(PERM_MANAGE_TAXONOMY))):
    return ok(await get_category_rules_service().delete_rule(rule_id), "Category rule deleted successfully")
