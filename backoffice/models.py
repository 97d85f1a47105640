"""Typed records for every entity kind kept by the back office.

Each record serializes with camelCase field names (``createdAt``,
``emailCredits``) so the data files stay readable by the dashboard, while the
Python side works with snake_case attributes. Either spelling is accepted on
input.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EntityKind(str, Enum):
    CLIENT = "client"
    CONTACT = "contact"
    LIST = "list"
    LIST_MEMBERSHIP = "list_membership"
    CAMPAIGN = "campaign"
    TEMPLATE = "template"
    DOMAIN = "domain"
    EMAIL = "email"


class Record(BaseModel):
    """Base for stored records: integer identifier plus creation time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: ClassVar[EntityKind]
    # Timestamp fields stamped with the current time by ``create``.
    stamp_on_create: ClassVar[tuple[str, ...]] = ("created_at",)
    # Timestamp fields re-stamped by every ``update``.
    touch_on_update: ClassVar[tuple[str, ...]] = ()
    # Fields forced to None by ``create`` whatever the input says.
    cleared_on_create: ClassVar[tuple[str, ...]] = ()

    id: int = Field(..., ge=1)
    created_at: Optional[datetime] = None


class Client(Record):
    kind: ClassVar[EntityKind] = EntityKind.CLIENT

    name: str
    email: str
    company: Optional[str] = None
    industry: Optional[str] = None
    status: str = "active"
    total_spend: float = 0
    email_credits: int = Field(0, ge=0)
    email_credits_purchased: int = Field(0, ge=0)
    email_credits_used: int = Field(0, ge=0)
    last_campaign_at: Optional[datetime] = None
    last_credit_update_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Managed by the credit ledger only.
CLIENT_CREDIT_FIELDS = frozenset(
    {"email_credits", "email_credits_purchased", "email_credits_used", "last_credit_update_at"}
)


class Contact(Record):
    kind: ClassVar[EntityKind] = EntityKind.CONTACT

    name: str
    email: str
    status: str = "active"
    last_activity_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class MailingList(Record):
    kind: ClassVar[EntityKind] = EntityKind.LIST
    stamp_on_create: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")
    touch_on_update: ClassVar[tuple[str, ...]] = ("updated_at",)

    name: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class ListMembership(Record):
    kind: ClassVar[EntityKind] = EntityKind.LIST_MEMBERSHIP
    stamp_on_create: ClassVar[tuple[str, ...]] = ("created_at", "added_at")

    contact_id: int
    list_id: int
    added_at: Optional[datetime] = None


class Campaign(Record):
    kind: ClassVar[EntityKind] = EntityKind.CAMPAIGN
    stamp_on_create: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")
    touch_on_update: ClassVar[tuple[str, ...]] = ("updated_at",)
    cleared_on_create: ClassVar[tuple[str, ...]] = ("sent_at",)

    name: str
    subject: str
    preview_text: Optional[str] = None
    sender_name: str
    reply_to_email: str
    content: Optional[str] = None
    status: str = "draft"
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_ab_test: bool = False
    winning_variant_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class Template(Record):
    kind: ClassVar[EntityKind] = EntityKind.TEMPLATE
    stamp_on_create: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")
    touch_on_update: ClassVar[tuple[str, ...]] = ("updated_at",)

    name: str
    description: Optional[str] = None
    subject: Optional[str] = None
    content: str
    category: str
    updated_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class Domain(Record):
    kind: ClassVar[EntityKind] = EntityKind.DOMAIN

    name: str
    status: str = "active"
    verified: bool = False
    default_domain: bool = False
    last_used_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class Email(Record):
    kind: ClassVar[EntityKind] = EntityKind.EMAIL
    cleared_on_create: ClassVar[tuple[str, ...]] = ("sent_at",)

    to: str
    subject: str
    content: str
    status: str = "draft"
    sent_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


RECORD_TYPES: Dict[EntityKind, type[Record]] = {
    model.kind: model
    for model in (Client, Contact, MailingList, ListMembership, Campaign, Template, Domain, Email)
}


# ---------------------------------------------------------------- credits


TransactionType = Literal["add", "deduct", "set", "allocate"]
LedgerScope = Literal["system", "client"]


class HistoryEntry(BaseModel):
    """Immutable audit record of one balance mutation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int = Field(..., ge=1)
    scope: LedgerScope
    client_id: Optional[int] = None
    type: TransactionType
    amount: int
    previous_balance: int
    new_balance: int
    reason: Optional[str] = None
    performed_by: Optional[int] = None
    created_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SystemCredits(BaseModel):
    """Snapshot of the system-wide balance."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    balance: int = Field(..., ge=0)
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
