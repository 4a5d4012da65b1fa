"""Unit tests for PreferenceService and quiet-hours evaluation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notify_service.features.notifications.enums import Category, Channel
from notify_service.features.notifications.models import NotificationPreference
from notify_service.features.notifications.preferences import (
    PreferenceService,
    quiet_hours_window_end,
)
from notify_service.features.notifications.schemas import PreferenceUpdate, Recipient


@pytest.fixture
def preferences(session_factory: async_sessionmaker[AsyncSession]) -> PreferenceService:
    return PreferenceService(session_factory)


class TestDefaults:
    """A user without a preference row receives everything."""

    @pytest.mark.parametrize("channel", list(Channel))
    async def test_every_channel_enabled(
        self, preferences: PreferenceService, channel: Channel
    ) -> None:
        assert await preferences.is_channel_enabled("u1", channel) is True

    @pytest.mark.parametrize("category", list(Category))
    async def test_every_category_enabled(
        self, preferences: PreferenceService, category: Category
    ) -> None:
        assert await preferences.is_category_enabled("u1", category) is True

    async def test_no_row(self, preferences: PreferenceService) -> None:
        assert await preferences.get_preferences("u1") is None
        assert await preferences.get_recipient("u1") == Recipient()
        assert await preferences.quiet_hours_end("u1") is None


class TestUpsert:
    """Tests for upsert_preferences()."""

    async def test_creates_row_with_defaults(self, preferences: PreferenceService) -> None:
        preference = await preferences.upsert_preferences(
            "u1", PreferenceUpdate(sms_enabled=False)
        )

        assert preference.user_id == "u1"
        assert preference.sms_enabled is False
        assert preference.email_enabled is True
        assert preference.marketing_enabled is True
        assert preference.quiet_hours_enabled is False
        assert preference.timezone == "UTC"

    async def test_updates_only_given_fields(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences(
            "u1", PreferenceUpdate(sms_enabled=False, preferred_phone="+15550001111")
        )
        preference = await preferences.upsert_preferences(
            "u1", PreferenceUpdate(marketing_enabled=False)
        )

        assert preference.sms_enabled is False
        assert preference.marketing_enabled is False
        assert preference.preferred_phone == "+15550001111"

    async def test_null_flag_is_ignored(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences("u1", PreferenceUpdate(email_enabled=False))
        preference = await preferences.upsert_preferences(
            "u1", PreferenceUpdate(email_enabled=None)
        )
        assert preference.email_enabled is False

    async def test_contact_fields_feed_recipient(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences(
            "u1",
            PreferenceUpdate(
                preferred_email="ada@example.com",
                preferred_phone="+15550001111",
                telegram_chat_id="1001",
                push_device_token="device-abc",
            ),
        )

        assert await preferences.get_recipient("u1") == Recipient(
            email="ada@example.com",
            phone="+15550001111",
            telegram_chat_id="1001",
            device_token="device-abc",
        )

    def test_rejects_bad_quiet_hours(self) -> None:
        with pytest.raises(ValidationError):
            PreferenceUpdate(quiet_hours_start="25:00")

    def test_rejects_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError):
            PreferenceUpdate(timezone="Mars/Olympus_Mons")


class TestGates:
    """Tests for the channel and category gates."""

    async def test_channel_opt_out(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences("u1", PreferenceUpdate(sms_enabled=False))

        assert await preferences.is_channel_enabled("u1", Channel.SMS) is False
        assert await preferences.is_channel_enabled("u1", Channel.EMAIL) is True
        assert await preferences.is_channel_enabled("u2", Channel.SMS) is True

    async def test_category_opt_out(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences("u1", PreferenceUpdate(marketing_enabled=False))

        assert await preferences.is_category_enabled("u1", Category.MARKETING) is False
        assert await preferences.is_category_enabled("u1", Category.SECURITY) is True

    async def test_system_category_and_in_app_channel_cannot_be_disabled(
        self, preferences: PreferenceService
    ) -> None:
        await preferences.upsert_preferences(
            "u1",
            PreferenceUpdate(
                email_enabled=False,
                sms_enabled=False,
                whatsapp_enabled=False,
                telegram_enabled=False,
                push_enabled=False,
                marketing_enabled=False,
                transactional_enabled=False,
                security_enabled=False,
            ),
        )

        assert await preferences.is_category_enabled("u1", Category.SYSTEM) is True
        assert await preferences.is_channel_enabled("u1", Channel.NONE) is True
        assert await preferences.is_allowed("u1", Channel.NONE, Category.SYSTEM) is True
        assert await preferences.is_allowed("u1", Channel.EMAIL, Category.SYSTEM) is False
        assert await preferences.is_allowed("u1", Channel.NONE, Category.MARKETING) is False

    @pytest.mark.parametrize(
        ("patch", "channel", "category", "expected"),
        [
            (PreferenceUpdate(), Channel.SMS, Category.MARKETING, True),
            (PreferenceUpdate(sms_enabled=False), Channel.SMS, Category.SECURITY, False),
            (PreferenceUpdate(sms_enabled=False), Channel.EMAIL, Category.MARKETING, True),
            (PreferenceUpdate(marketing_enabled=False), Channel.EMAIL, Category.MARKETING, False),
            (
                PreferenceUpdate(marketing_enabled=False),
                Channel.EMAIL,
                Category.TRANSACTIONAL,
                True,
            ),
        ],
    )
    async def test_is_allowed(
        self,
        preferences: PreferenceService,
        patch: PreferenceUpdate,
        channel: Channel,
        category: Category,
        expected: bool,
    ) -> None:
        await preferences.upsert_preferences("u1", patch)
        assert await preferences.is_allowed("u1", channel, category) is expected


def _quiet(start: str, end: str, timezone: str = "UTC", enabled: bool = True) -> NotificationPreference:
    return NotificationPreference(
        user_id="u1",
        quiet_hours_enabled=enabled,
        quiet_hours_start=start,
        quiet_hours_end=end,
        timezone=timezone,
    )


class TestQuietHoursWindow:
    """Tests for quiet_hours_window_end()."""

    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (datetime(2026, 3, 10, 23, 30, tzinfo=UTC), datetime(2026, 3, 11, 7, 0, tzinfo=UTC)),
            (datetime(2026, 3, 10, 22, 0, tzinfo=UTC), datetime(2026, 3, 11, 7, 0, tzinfo=UTC)),
            (datetime(2026, 3, 10, 3, 15, tzinfo=UTC), datetime(2026, 3, 10, 7, 0, tzinfo=UTC)),
            (datetime(2026, 3, 10, 7, 0, tzinfo=UTC), None),
            (datetime(2026, 3, 10, 12, 0, tzinfo=UTC), None),
        ],
    )
    def test_window_wrapping_midnight(self, now: datetime, expected: datetime | None) -> None:
        assert quiet_hours_window_end(_quiet("22:00", "07:00"), now) == expected

    def test_same_day_window(self) -> None:
        preference = _quiet("09:00", "17:00")
        now = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)

        assert quiet_hours_window_end(preference, now) == datetime(2026, 3, 10, 17, 0, tzinfo=UTC)
        assert quiet_hours_window_end(preference, now.replace(hour=18)) is None

    def test_user_timezone(self) -> None:
        # 04:00 UTC is 23:00 the previous evening in New York (EST, UTC-5)
        preference = _quiet("22:00", "07:00", timezone="America/New_York")
        now = datetime(2026, 1, 15, 4, 0, tzinfo=UTC)

        assert quiet_hours_window_end(preference, now) == datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def test_unknown_timezone_falls_back_to_utc(self) -> None:
        preference = _quiet("22:00", "07:00", timezone="Nowhere/Special")
        now = datetime(2026, 3, 10, 23, 0, tzinfo=UTC)

        assert quiet_hours_window_end(preference, now) == datetime(2026, 3, 11, 7, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "preference",
        [
            None,
            _quiet("22:00", "07:00", enabled=False),
            _quiet("08:00", "08:00"),
        ],
    )
    def test_no_window(self, preference: NotificationPreference | None) -> None:
        assert quiet_hours_window_end(preference, datetime(2026, 3, 10, 23, 0, tzinfo=UTC)) is None

    async def test_service_reads_stored_window(self, preferences: PreferenceService) -> None:
        await preferences.upsert_preferences(
            "u1",
            PreferenceUpdate(
                quiet_hours_enabled=True,
                quiet_hours_start="22:00",
                quiet_hours_end="07:00",
            ),
        )

        end = await preferences.quiet_hours_end("u1", datetime(2026, 3, 10, 23, 0, tzinfo=UTC))
        assert end == datetime(2026, 3, 11, 7, 0, tzinfo=UTC)
