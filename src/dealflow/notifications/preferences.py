"""Notification preferences and the display gate.

Every category is shown unless the user switched it off. Activity subtypes
that no category claims are never shown, so a new event type stays silent
until a toggle exists for it. Scoring is unaffected by any of this.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from dealflow.db.models import UserSettings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationPreferences(BaseModel):
    """Flat per-user toggles. Unknown keys in stored settings are ignored."""

    model_config = ConfigDict(extra="ignore")

    in_app_notifications: bool = True
    notify_stale_alerts: bool = True
    notify_flex_alerts: bool = True
    notify_info_request_emails: bool = True
    notify_activity_deal_created: bool = True
    notify_activity_lender_added: bool = True
    notify_activity_lender_updated: bool = True
    notify_activity_milestone_added: bool = True
    notify_activity_milestone_completed: bool = True
    notify_activity_milestone_missed: bool = True
    notify_activity_stage_changed: bool = True
    notify_activity_status_changed: bool = True


PREFERENCE_KEYS = frozenset(NotificationPreferences.model_fields)

# Activity subtype -> preference key
ACTIVITY_PREFERENCE_MAP: dict[str, str] = {
    "deal_created": "notify_activity_deal_created",
    "lender_added": "notify_activity_lender_added",
    "lender_updated": "notify_activity_lender_updated",
    "milestone_added": "notify_activity_milestone_added",
    "milestone_completed": "notify_activity_milestone_completed",
    "milestone_missed": "notify_activity_milestone_missed",
    "stage_changed": "notify_activity_stage_changed",
    "status_changed": "notify_activity_status_changed",
    "flex_deal_viewed": "notify_flex_alerts",
    "flex_file_downloaded": "notify_flex_alerts",
    "flex_info_requested": "notify_flex_alerts",
    "flex_deal_saved": "notify_flex_alerts",
    "flex_deal_shared": "notify_flex_alerts",
    "flex_nda_requested": "notify_flex_alerts",
    "flex_term_sheet_requested": "notify_flex_alerts",
    "flex_info_request_approved": "notify_flex_alerts",
    "flex_info_request_denied": "notify_flex_alerts",
}


def preference_for(subtype: str) -> str | None:
    """The preference key governing ``subtype``, or None if unclaimed."""
    return ACTIVITY_PREFERENCE_MAP.get(subtype)


def should_show_activity(preferences: NotificationPreferences, subtype: str) -> bool:
    """Check if an activity should be rendered as a notification."""
    if not preferences.in_app_notifications:
        return False
    key = preference_for(subtype)
    if key is None:
        return False
    return bool(getattr(preferences, key))


def should_show_stale_alerts(preferences: NotificationPreferences) -> bool:
    return preferences.in_app_notifications and preferences.notify_stale_alerts


def should_show_flex_alerts(preferences: NotificationPreferences) -> bool:
    return preferences.in_app_notifications and preferences.notify_flex_alerts


def merge_preferences(stored: dict[str, Any] | None) -> NotificationPreferences:
    """Defaults overlaid with stored toggles; non-boolean values are dropped."""
    overrides = {
        key: value
        for key, value in (stored or {}).items()
        if key in PREFERENCE_KEYS and isinstance(value, bool)
    }
    return NotificationPreferences(**overrides)


async def get_notification_preferences(db: AsyncSession, user_id: str) -> NotificationPreferences:
    """Load a user's preferences, falling back to defaults."""
    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    return merge_preferences(settings.notifications if settings else None)


async def update_notification_preferences(
    db: AsyncSession,
    user_id: str,
    changes: dict[str, bool],
) -> NotificationPreferences:
    """
    Merge ``changes`` into the stored toggles.

    Raises:
        ValueError: If a key is not a known preference.
    """
    unknown = sorted(set(changes) - PREFERENCE_KEYS)
    if unknown:
        msg = f"Unknown notification preferences: {', '.join(unknown)}"
        raise ValueError(msg)

    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = UserSettings(user_id=user_id, notifications={})
        db.add(settings)

    merged = dict(settings.notifications or {})
    merged.update(changes)
    settings.notifications = merged
    settings.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return merge_preferences(merged)
