"""
Dashboard Statistics Service

Aggregates for the platform admin dashboard and the tenant dashboard.
Message volume is the audience of campaigns that are running or completed;
revenue and consumption come from the wallet ledger.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from models import Campaign, Contact, MessageTemplate, Plan, WalletTransaction
from models_rbac import User

logger = logging.getLogger(__name__)

CLIENT_ROLE = "user"
SENT_CAMPAIGN_STATUSES = ("running", "completed")
USAGE_CHANNELS = ("whatsapp", "sms", "rcs")
TOP_CLIENT_LIMIT = 5


class DashboardStatsService:
    def __init__(self, db: Session):
        self.db = db

    def _ledger_sum(self, kind: str, since: Optional[datetime] = None) -> int:
        query = self.db.query(func.coalesce(func.sum(WalletTransaction.amount), 0)).filter(
            WalletTransaction.type == kind
        )
        if since is not None:
            query = query.filter(WalletTransaction.created_at >= since)
        return int(query.scalar() or 0)

    def _sent_volume(self, since: Optional[datetime] = None) -> int:
        query = self.db.query(func.coalesce(func.sum(Campaign.audience_count), 0)).filter(
            Campaign.status.in_(SENT_CAMPAIGN_STATUSES)
        )
        if since is not None:
            query = query.filter(Campaign.created_at >= since)
        return int(query.scalar() or 0)

    def weekly_messages(self, today: datetime) -> List[Dict[str, Any]]:
        """Campaign audience per day for the last seven days, oldest first"""
        start = today - timedelta(days=6)
        rows = (
            self.db.query(Campaign.created_at, Campaign.audience_count)
            .filter(Campaign.created_at >= start)
            .all()
        )

        per_day: Dict[str, int] = {}
        for created_at, audience_count in rows:
            key = created_at.date().isoformat()
            per_day[key] = per_day.get(key, 0) + (audience_count or 0)

        days = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            days.append({
                "date": day.date().isoformat(),
                "day": day.strftime("%a"),
                "messages": per_day.get(day.date().isoformat(), 0),
            })
        return days

    def channel_usage(self) -> List[Dict[str, Any]]:
        """Share of sent volume per channel; percentages are of all channels"""
        rows = (
            self.db.query(Campaign.channel, func.coalesce(func.sum(Campaign.audience_count), 0))
            .filter(Campaign.status.in_(SENT_CAMPAIGN_STATUSES))
            .group_by(Campaign.channel)
            .all()
        )
        volumes = {(channel or "").lower(): int(volume or 0) for channel, volume in rows}
        total = sum(volumes.values()) or 1

        return [
            {
                "channel": channel,
                "messages": volumes.get(channel, 0),
                "percentage": round(volumes.get(channel, 0) * 100 / total),
            }
            for channel in USAGE_CHANNELS
        ]

    def plan_distribution(self) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Plan.name, func.count(User.id))
            .select_from(User)
            .outerjoin(Plan, Plan.id == User.plan_id)
            .filter(User.role == CLIENT_ROLE)
            .group_by(Plan.name)
            .all()
        )
        return [{"name": name or "Unassigned", "value": int(count)} for name, count in rows]

    def top_clients(self) -> List[Dict[str, Any]]:
        clients = (
            self.db.query(User)
            .filter(User.role == CLIENT_ROLE)
            .order_by(User.credits_available.desc(), User.id)
            .limit(TOP_CLIENT_LIMIT)
            .all()
        )
        return [
            {"id": c.id, "name": c.company or c.name, "balance": c.credits_available or 0}
            for c in clients
        ]

    def platform_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counters and trends across every tenant"""
        now = now or datetime.utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = today.replace(day=1)

        clients = self.db.query(User).filter(User.role == CLIENT_ROLE)

        return {
            "total_clients": clients.count(),
            "active_clients": clients.filter(User.status == "active").count(),
            "active_plans": self.db.query(Plan).filter(Plan.status == "active").count(),
            "total_messages_processed": self._sent_volume(),
            "messages_today": self._sent_volume(today),
            "revenue_total": self._ledger_sum("credit"),
            "revenue_today": self._ledger_sum("credit", today),
            "revenue_month": self._ledger_sum("credit", month_start),
            "credits_consumed_today": self._ledger_sum("debit", today),
            "credits_consumed_month": self._ledger_sum("debit", month_start),
            "weekly_messages": self.weekly_messages(today),
            "channel_usage": self.channel_usage(),
            "plan_distribution": self.plan_distribution(),
            "top_clients": self.top_clients(),
        }

    def tenant_stats(self, user: User) -> Dict[str, Any]:
        """Counters for one account's own dashboard"""
        campaigns = self.db.query(Campaign).filter(Campaign.user_id == user.id)
        campaigns_by_status = dict(
            self.db.query(Campaign.status, func.count(Campaign.id))
            .filter(Campaign.user_id == user.id)
            .group_by(Campaign.status)
            .all()
        )
        sent = campaigns.filter(Campaign.status.in_(SENT_CAMPAIGN_STATUSES))
        channels = user.channels_enabled or []

        return {
            "contacts": self.db.query(Contact).filter(Contact.user_id == user.id).count(),
            "templates": self.db.query(MessageTemplate).filter(MessageTemplate.user_id == user.id).count(),
            "campaigns": campaigns.count(),
            "campaigns_by_status": {k: int(v) for k, v in campaigns_by_status.items()},
            "messages_sent": int(
                sent.with_entities(func.coalesce(func.sum(Campaign.audience_count), 0)).scalar() or 0
            ),
            "credits_available": user.credits_available or 0,
            "credits_used": user.credits_used or 0,
            "channel_distribution": {channel: channel in channels for channel in USAGE_CHANNELS},
        }
