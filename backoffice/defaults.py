"""Records seeded into empty collections on first start."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from .models import EntityKind

DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Newsletter",
        "description": "Standard newsletter layout",
        "content": "<h1>Newsletter Template</h1><p>This is a sample newsletter template.</p>",
        "category": "newsletter",
        "metadata": {"icon": "file-earmark-text", "iconColor": "primary"},
    },
    {
        "name": "Promotional",
        "description": "For sales and offers",
        "content": "<h1>Promotional Template</h1><p>This is a sample promotional template.</p>",
        "category": "promotional",
        "metadata": {"icon": "megaphone", "iconColor": "danger", "selected": True},
    },
    {
        "name": "Welcome",
        "description": "For new subscribers",
        "content": "<h1>Welcome Template</h1><p>This is a sample welcome template.</p>",
        "category": "transactional",
        "metadata": {"icon": "envelope-check", "iconColor": "success"},
    },
]

DEFAULT_LISTS: List[Dict[str, Any]] = [
    {"name": "Newsletter Subscribers", "description": "People who subscribed to the newsletter"},
    {"name": "Product Updates", "description": "People interested in product updates"},
    {"name": "New Customers", "description": "Recently acquired customers"},
    {"name": "VIP Members", "description": "Premium customers"},
]


def _campaign(
    name: str,
    subject: str,
    preview: str,
    content: str,
    status: str,
    scheduled_at: datetime | None,
    **metadata: Any,
) -> Dict[str, Any]:
    return {
        "name": name,
        "subject": subject,
        "preview_text": preview,
        "sender_name": "Your Company",
        "reply_to_email": "info@example.com",
        "content": content,
        "status": status,
        "scheduled_at": scheduled_at,
        "metadata": metadata,
    }


DEFAULT_CAMPAIGNS: List[Dict[str, Any]] = [
    _campaign(
        "Monthly Newsletter",
        "May Newsletter",
        "Check out our latest updates",
        "<h1>Monthly Newsletter</h1><p>Here are our latest updates...</p>",
        "sent",
        datetime(2023, 5, 15, 9, tzinfo=timezone.utc),
        icon={"name": "envelope-fill", "color": "primary"},
        subtitle="May 2023",
        recipients=12483,
        openRate=46.2,
        clickRate=21.8,
    ),
    _campaign(
        "Product Launch",
        "Introducing ProMax X1",
        "Our newest product has arrived",
        "<h1>Product Launch</h1><p>Meet our newest product...</p>",
        "sent",
        datetime(2023, 5, 8, 9, tzinfo=timezone.utc),
        icon={"name": "megaphone-fill", "color": "danger"},
        subtitle="ProMax X1",
        recipients=24192,
        openRate=58.7,
        clickRate=32.4,
    ),
    _campaign(
        "Spring Sale",
        "25% Off Everything",
        "Limited time spring sale",
        "<h1>Spring Sale</h1><p>Don't miss our biggest sale...</p>",
        "scheduled",
        datetime(2023, 5, 20, 9, tzinfo=timezone.utc),
        icon={"name": "tag-fill", "color": "warning"},
        subtitle="25% Discount",
        recipients=18743,
        openRate=0,
        clickRate=0,
    ),
    _campaign(
        "Welcome Series",
        "Welcome to Our Family",
        "Get started with our products",
        "<h1>Welcome Series</h1><p>Thanks for joining us...</p>",
        "active",
        None,
        icon={"name": "envelope-fill", "color": "info"},
        subtitle="Automation",
        recipients=3891,
        openRate=52.1,
        clickRate=27.5,
    ),
]

DEFAULTS: Dict[EntityKind, List[Dict[str, Any]]] = {
    EntityKind.TEMPLATE: DEFAULT_TEMPLATES,
    EntityKind.LIST: DEFAULT_LISTS,
    EntityKind.CAMPAIGN: DEFAULT_CAMPAIGNS,
}
