"""
SQLAlchemy models for the NotifyNow domain entities.

RBAC-related tables (user, user_permission) live in models_rbac.py.
"""

import enum
import json
import logging
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric, ForeignKey, Index, event,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)

Base = declarative_base()


def new_uuid() -> str:
    return str(uuid.uuid4())


class Channel(str, enum.Enum):
    """Messaging media a plan, vendor or user can be enabled for"""
    SMS = "sms"
    WHATSAPP = "whatsapp"
    RCS = "rcs"
    EMAIL = "email"
    VOICE = "voice"
    VOICEBOT = "voicebot"
    INSTAGRAM = "instagram"
    MESSENGER = "messenger"
    TELEGRAM = "telegram"


class JSONList(TypeDecorator):
    """
    List of strings stored as JSON text.

    Writes must be a list (or tuple) of strings. Reads never raise: NULL,
    malformed JSON or a JSON value that is not a list all come back as [].
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return json.dumps([])
        if isinstance(value, str):
            raise ValueError("JSONList column expects a list, got a string")
        items = [item.value if isinstance(item, enum.Enum) else item for item in value]
        if not all(isinstance(item, str) for item in items):
            raise ValueError("JSONList column only stores strings")
        return json.dumps(items)

    def process_result_value(self, value, dialect):
        if not value:
            return []
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid JSON list in storage, reading as empty: {value!r:.80}")
            return []
        return parsed if isinstance(parsed, list) else []


class Plan(Base):
    """Subscription plan offered to user accounts"""
    __tablename__ = "plan"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    monthly_credits = Column(Integer, nullable=False, default=0)
    client_count = Column(Integer, nullable=False, default=1)
    channels_allowed = Column(JSONList, nullable=False, default=list)
    automation_limit = Column(Integer, nullable=False, default=-1)  # -1 = unlimited
    campaign_limit = Column(Integer, nullable=False, default=-1)  # -1 = unlimited
    api_access = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active", index=True)  # active, inactive
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Reseller(Base):
    """Reseller profile, always paired 1:1 with a User of role 'reseller'"""
    __tablename__ = "reseller"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    domain = Column(String(255), nullable=True)
    api_base_url = Column(String(500), nullable=True)
    commission_percent = Column(Numeric(5, 2, asdecimal=False), nullable=False, default=10)
    status = Column(String(20), nullable=False, default="active")
    plan_id = Column(String(36), ForeignKey("plan.id", ondelete="SET NULL"), nullable=True)
    channels_enabled = Column(JSONList, nullable=False, default=list)
    revenue_generated = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    clients_managed = Column(Integer, nullable=False, default=0)
    payout_pending = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="reseller_profile")


class Vendor(Base):
    """Upstream messaging provider"""
    __tablename__ = "vendor"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)  # sms, whatsapp, rcs, email, voice, multi
    api_url = Column(String(500), nullable=False)
    api_key = Column(Text, nullable=True)  # Write-only, never returned in plaintext
    priority = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="active")
    channels = Column(JSONList, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    mappings = relationship("VendorUserMapping", back_populates="vendor")


class VendorUserMapping(Base):
    """Routes a user's traffic to a vendor"""
    __tablename__ = "vendor_user_mapping"

    id = Column(String(36), primary_key=True, default=new_uuid)
    vendor_id = Column(String(36), ForeignKey("vendor.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    priority = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="mappings")

    __table_args__ = (
        Index("uq_vendor_user", "vendor_id", "user_id", unique=True),
    )


class LedgerImmutableError(Exception):
    """Raised when code tries to modify or remove a ledger entry"""
    pass


class WalletTransaction(Base):
    """Append-only credit/debit ledger entry"""
    __tablename__ = "wallet_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # credit, debit
    amount = Column(Integer, nullable=False)  # credits, always positive
    description = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    created_by = Column(Integer, ForeignKey("user.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", foreign_keys=[user_id])


@event.listens_for(WalletTransaction, "before_update")
def _refuse_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(f"Wallet transaction {target.id} is immutable")


@event.listens_for(WalletTransaction, "before_delete")
def _refuse_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Wallet transaction {target.id} cannot be deleted")


class Contact(Base):
    """Tenant-scoped contact"""
    __tablename__ = "contact"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    email = Column(String(255), nullable=True)
    category = Column(String(50), nullable=False, default="lead")
    channel = Column(String(20), nullable=False, default="whatsapp")
    labels = Column(String(500), nullable=False, default="")
    starred = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active")  # active, blocked, unsubscribed
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("uq_contact_owner_phone", "user_id", "phone", unique=True),
    )


class MessageTemplate(Base):
    """Tenant-scoped message template subject to admin approval"""
    __tablename__ = "message_template"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    language = Column(String(20), nullable=False, default="en")
    category = Column(String(50), nullable=True)
    channel = Column(String(20), nullable=False)
    template_type = Column(String(50), nullable=True)
    header_type = Column(String(50), nullable=True)
    header_content = Column(Text, nullable=True)
    body = Column(Text, nullable=False)
    footer = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected, draft
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Campaign(Base):
    """Tenant-scoped campaign"""
    __tablename__ = "campaign"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    channel = Column(String(20), nullable=False)
    template_id = Column(String(36), ForeignKey("message_template.id", ondelete="SET NULL"), nullable=True)
    template_name = Column(String(255), nullable=True)
    audience_id = Column(String(100), nullable=True)
    audience_count = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="draft")
    scheduled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RcsBot(Base):
    """RCS bot configuration"""
    __tablename__ = "rcs_bot"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    route_type = Column(String(50), nullable=True)
    bot_type = Column(String(50), nullable=True)
    message_type = Column(String(50), nullable=True)
    billing_category = Column(String(50), nullable=True)
    bot_name = Column(String(255), nullable=False)
    brand_name = Column(String(255), nullable=False)
    short_description = Column(String(500), nullable=True)
    brand_color = Column(String(20), nullable=True)
    bot_logo_url = Column(String(500), nullable=True)
    banner_image_url = Column(String(500), nullable=True)
    terms_url = Column(String(500), nullable=True)
    privacy_url = Column(String(500), nullable=True)
    development_platform = Column(String(100), nullable=True)
    webhook_url = Column(String(500), nullable=True)
    callback_url = Column(String(500), nullable=True)
    languages_supported = Column(String(255), nullable=True)
    agree_all_carriers = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="draft")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contacts = relationship("RcsBotContact", back_populates="bot", cascade="all, delete-orphan")
    media = relationship("RcsBotMedia", back_populates="bot", cascade="all, delete-orphan")


class RcsBotContact(Base):
    __tablename__ = "rcs_bot_contact"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bot_id = Column(Integer, ForeignKey("rcs_bot.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_type = Column(String(20), nullable=False)  # phone, email, website
    contact_value = Column(String(255), nullable=False)
    label = Column(String(100), nullable=True)

    bot = relationship("RcsBot", back_populates="contacts")


class RcsBotMedia(Base):
    __tablename__ = "rcs_bot_media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bot_id = Column(Integer, ForeignKey("rcs_bot.id", ondelete="CASCADE"), nullable=False, index=True)
    media_type = Column(String(20), nullable=False)  # logo, banner, image, video
    media_url = Column(String(500), nullable=False)

    bot = relationship("RcsBot", back_populates="media")


class AdminAuditLog(Base):
    """Audit log for platform admin actions"""
    __tablename__ = "admin_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(100), nullable=True)
    details_json = Column(Text, nullable=True)  # JSON string
    created_at = Column(DateTime, default=datetime.utcnow)
