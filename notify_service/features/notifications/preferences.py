"""Per-user notification preferences.

Opt-out model: a user without a preference row receives everything, and
every flag on a new row starts enabled. Channel ``none`` (in-app) and the
``system`` category cannot be turned off.
"""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from notify_service.core.services.base import BaseService

from .enums import Category, Channel
from .models import NotificationPreference
from .repository import PreferenceRepository
from .schemas import PreferenceUpdate, Recipient

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_CHANNEL_FLAGS: dict[Channel, str] = {
    Channel.EMAIL: "email_enabled",
    Channel.SMS: "sms_enabled",
    Channel.WHATSAPP: "whatsapp_enabled",
    Channel.TELEGRAM: "telegram_enabled",
    Channel.PUSH: "push_enabled",
}

_CATEGORY_FLAGS: dict[Category, str] = {
    Category.MARKETING: "marketing_enabled",
    Category.TRANSACTIONAL: "transactional_enabled",
    Category.SECURITY: "security_enabled",
}


def _parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def quiet_hours_window_end(
    preference: NotificationPreference | None,
    now: datetime,
) -> datetime | None:
    """Return when the current quiet-hours window ends, or None if outside one.

    The window is evaluated in the user's timezone and may wrap midnight
    (22:00-07:00). Equal start and end means no window.

    Args:
        preference: Preference row (None = no quiet hours)
        now: Aware reference time

    Returns:
        End of the window in UTC, or None when delivery may happen now
    """
    if (
        preference is None
        or not preference.quiet_hours_enabled
        or not preference.quiet_hours_start
        or not preference.quiet_hours_end
    ):
        return None

    start = _parse_hhmm(preference.quiet_hours_start)
    end = _parse_hhmm(preference.quiet_hours_end)
    if start == end:
        return None

    try:
        tz = ZoneInfo(preference.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")

    local_now = now.astimezone(tz)
    current = local_now.time().replace(second=0, microsecond=0)
    end_today = local_now.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)

    if start < end:
        if start <= current < end:
            return end_today.astimezone(UTC)
        return None

    # Window wraps midnight
    if current >= start:
        return (end_today + timedelta(days=1)).astimezone(UTC)
    if current < end:
        return end_today.astimezone(UTC)
    return None


class PreferenceService(BaseService):
    """Preference lookups and updates, each in its own session.

    Example:
        prefs = PreferenceService(session_factory)
        if await prefs.is_channel_enabled("u1", Channel.SMS):
            ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session_factory)
        self._repo = PreferenceRepository()

    async def get_preferences(self, user_id: str) -> NotificationPreference | None:
        async with self.session() as session:
            return await self._repo.get_for_user(session, user_id)

    async def is_channel_enabled(self, user_id: str, channel: Channel) -> bool:
        flag = _CHANNEL_FLAGS.get(channel)
        if flag is None:
            return True
        preference = await self.get_preferences(user_id)
        enabled = preference is None or bool(getattr(preference, flag))
        self._lazy.debug(lambda: f"is_channel_enabled({user_id}, {channel.value}) -> {enabled}")
        return enabled

    async def is_category_enabled(self, user_id: str, category: Category) -> bool:
        flag = _CATEGORY_FLAGS.get(category)
        if flag is None:
            return True
        preference = await self.get_preferences(user_id)
        enabled = preference is None or bool(getattr(preference, flag))
        self._lazy.debug(lambda: f"is_category_enabled({user_id}, {category.value}) -> {enabled}")
        return enabled

    async def is_allowed(self, user_id: str, channel: Channel, category: Category) -> bool:
        """Both gates in one lookup: the channel and the category must be enabled."""
        preference = await self.get_preferences(user_id)
        if preference is None:
            return True
        channel_flag = _CHANNEL_FLAGS.get(channel)
        category_flag = _CATEGORY_FLAGS.get(category)
        channel_ok = channel_flag is None or bool(getattr(preference, channel_flag))
        category_ok = category_flag is None or bool(getattr(preference, category_flag))
        return channel_ok and category_ok

    async def upsert_preferences(
        self,
        user_id: str,
        patch: PreferenceUpdate,
    ) -> NotificationPreference:
        """Update the user's row, creating it first if needed.

        Only fields explicitly set on ``patch`` are written.
        """
        changes = patch.model_dump(exclude_unset=True)
        if "preferred_email" in changes and changes["preferred_email"] is not None:
            changes["preferred_email"] = str(changes["preferred_email"])

        async with self.transaction() as session:
            preference = await self._repo.get_for_user(session, user_id)
            created = preference is None
            if preference is None:
                preference = NotificationPreference(user_id=user_id)
                session.add(preference)
            for field_name, value in changes.items():
                # NOT NULL flags keep their value when the patch sends null
                if value is None and field_name.endswith("_enabled"):
                    continue
                setattr(preference, field_name, value)
            await session.flush()
            await session.refresh(preference)

        self.logger.info(
            f"Notification preferences {'created' if created else 'updated'} for user {user_id}",
            extra={"user_id": user_id, "fields": sorted(changes)},
        )
        return preference

    async def get_recipient(self, user_id: str) -> Recipient:
        """Addresses stored on the user's preference row (empty when none)."""
        preference = await self.get_preferences(user_id)
        if preference is None:
            return Recipient()
        return Recipient(
            email=preference.preferred_email,
            phone=preference.preferred_phone,
            telegram_chat_id=preference.telegram_chat_id,
            device_token=preference.push_device_token,
        )

    async def quiet_hours_end(self, user_id: str, now: datetime | None = None) -> datetime | None:
        """End of the user's current quiet-hours window, if they are in one."""
        preference = await self.get_preferences(user_id)
        return quiet_hours_window_end(preference, now or datetime.now(UTC))
