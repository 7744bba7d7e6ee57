"""
Dashboard Statistics API Routes

- Platform admin overview across every tenant
- Per-account dashboard counters
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session
from typing import Dict, List

from auth_dependencies import require_feature, require_platform_admin
from db import get_db
from models_rbac import User
from permissions import Feature
from services.stats_service import DashboardStatsService

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


class CamelModel(BaseModel):
    """Dashboard payloads use camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyMessages(CamelModel):
    date: str
    day: str
    messages: int


class ChannelUsage(CamelModel):
    channel: str
    messages: int
    percentage: int


class PlanSlice(CamelModel):
    name: str
    value: int


class TopClient(CamelModel):
    id: int
    name: str
    balance: int


class PlatformStats(CamelModel):
    total_clients: int
    active_clients: int
    active_plans: int
    total_messages_processed: int
    messages_today: int
    revenue_total: int
    revenue_today: int
    revenue_month: int
    credits_consumed_today: int
    credits_consumed_month: int
    weekly_messages: List[DailyMessages]
    channel_usage: List[ChannelUsage]
    plan_distribution: List[PlanSlice]
    top_clients: List[TopClient]


class TenantStats(CamelModel):
    contacts: int
    templates: int
    campaigns: int
    campaigns_by_status: Dict[str, int]
    messages_sent: int
    credits_available: int
    credits_used: int
    channel_distribution: Dict[str, bool]


class PlatformStatsResponse(BaseModel):
    success: bool = True
    stats: PlatformStats


class TenantStatsResponse(BaseModel):
    success: bool = True
    stats: TenantStats


@router.get("/super-admin", response_model=PlatformStatsResponse)
async def get_platform_stats(
    current_user: User = Depends(require_platform_admin()),
    db: Session = Depends(get_db),
):
    """Platform-wide counters, revenue and usage trends (platform admin only)"""
    stats = DashboardStatsService(db).platform_stats()
    return PlatformStatsResponse(stats=PlatformStats(**stats))


@router.get("/stats", response_model=TenantStatsResponse)
async def get_account_stats(
    current_user: User = Depends(require_feature(Feature.DASHBOARD_VIEW)),
    db: Session = Depends(get_db),
):
    """Counters for the caller's own account"""
    stats = DashboardStatsService(db).tenant_stats(current_user)
    return TenantStatsResponse(stats=TenantStats(**stats))
