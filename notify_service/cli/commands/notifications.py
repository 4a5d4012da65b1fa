"""One-off notification commands.

Example:bash
    # Render a built-in template and email it
    notify-service send --channel email --email ada@example.com \\
        --template welcome --data '{"user_name": "Ada"}'

    # Raw SMS, skipping the queue
    notify-service send --channel sms --phone +15550001111 --body "Hi" --priority urgent

    # Inspect a notification and its delivery attempts
    notify-service show notif_3f2a...
"""

import json
import sys

import click
from pydantic import ValidationError

from notify_service.cli.utils import coro, error, header, key_value, styled_state, success, warning
from notify_service.core.exceptions import AppException
from notify_service.features.notifications.enums import Category, Channel, Priority
from notify_service.features.notifications.schemas import Recipient, SendNotificationRequest
from notify_service.system import NotificationSystem


def _parse_data(ctx: click.Context, param: click.Parameter, value: str | None) -> dict:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object")
    return data


@click.command()
@click.option(
    "--channel",
    type=click.Choice([c.value for c in Channel]),
    required=True,
    help="Delivery channel",
)
@click.option("--user", "user_id", default=None, help="User id (enables preference checks)")
@click.option(
    "--category",
    type=click.Choice([c.value for c in Category]),
    default=Category.TRANSACTIONAL.value,
    show_default=True,
)
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority]),
    default=Priority.NORMAL.value,
    show_default=True,
)
@click.option("--template", "template_id", default=None, help="Built-in template id")
@click.option("--data", "template_data", callback=_parse_data, default=None, help="Template data as JSON")
@click.option("--subject", default=None)
@click.option("--body", default=None)
@click.option("--email", default=None, help="Recipient email address")
@click.option("--phone", default=None, help="Recipient phone (E.164)")
@click.option("--chat-id", "telegram_chat_id", default=None, help="Recipient Telegram chat id")
@click.option("--device-token", default=None, help="Recipient APNs device token")
@coro
async def send(
    channel: str,
    user_id: str | None,
    category: str,
    priority: str,
    template_id: str | None,
    template_data: dict,
    subject: str | None,
    body: str | None,
    email: str | None,
    phone: str | None,
    telegram_chat_id: str | None,
    device_token: str | None,
) -> None:
    """Send a single notification."""
    try:
        request = SendNotificationRequest(
            user_id=user_id,
            channel=Channel(channel),
            category=Category(category),
            priority=Priority(priority),
            template_id=template_id,
            template_data=template_data,
            subject=subject,
            body=body,
            recipient=Recipient(
                email=email,
                phone=phone,
                telegram_chat_id=telegram_chat_id,
                device_token=device_token,
            ),
        )
    except ValidationError as e:
        error(f"Invalid request: {e}")
        sys.exit(1)

    system = NotificationSystem()
    try:
        await system.start()
        result = await system.service.send(request)
    except AppException as e:
        error(e.detail)
        sys.exit(1)
    finally:
        await system.stop()

    click.echo(result.model_dump_json(indent=2, exclude_none=True))
    if result.success:
        success(f"Notification {result.notification_id} accepted by {result.provider}")
    else:
        warning(f"Notification {result.notification_id} failed")
        sys.exit(2)


@click.command()
@click.argument("notification_id")
@coro
async def show(notification_id: str) -> None:
    """Show a notification and its delivery attempts."""
    system = NotificationSystem()
    try:
        notification = await system.service.get_or_raise(notification_id)
        attempts = await system.service.get_delivery_attempts(notification_id)
    except AppException as e:
        error(e.detail)
        sys.exit(1)
    finally:
        await system.stop()

    header(f"Notification {notification.id}")
    for label, value in (
        ("user", notification.user_id),
        ("channel", notification.channel),
        ("category", notification.category),
        ("priority", notification.priority),
        ("status", styled_state(notification.status)),
        ("provider", notification.provider),
        ("message", notification.status_message),
        ("retries", f"{notification.retry_count}/{notification.max_retries}"),
        ("created", notification.created_at),
        ("read", notification.read_at),
        ("deleted", notification.deleted_at),
    ):
        if value is not None:
            key_value(label, value)

    header(f"Delivery attempts ({len(attempts)})")
    for attempt in attempts:
        if attempt.success:
            outcome = styled_state("sent")
        else:
            outcome = f"{attempt.error_code}: {attempt.error_message}"
        click.echo(f"  #{attempt.attempt} {attempt.provider} {outcome}")
