"""
Telegram delivery channel for notifications.

Optional: when no bot token is configured every send is skipped.
"""

import logging
from typing import Union

import httpx

from carpool.app.core.config import settings
from carpool.app.core.reliability import CircuitOpenError, telegram_circuit_breaker

logger = logging.getLogger(__name__)


class TelegramDeliveryError(Exception):
    pass


async def _post_message(chat_id: Union[int, str], text: str) -> None:
    url = f"{settings.telegram_api_url}/bot{settings.telegram_bot_token}/sendMessage"
    async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
        response = await client.post(url, json={
            "chat_id": str(chat_id),
            "text": text,
            "parse_mode": "HTML",
        })
    payload = response.json()
    if not payload.get("ok"):
        raise TelegramDeliveryError(payload.get("description", f"HTTP {response.status_code}"))


async def send_message(chat_id: Union[int, str], text: str) -> bool:
    """
    Send a message to a Telegram chat.

    Returns:
        True if Telegram accepted the message, False if skipped or failed
    """
    if not settings.telegram_bot_token:
        logger.debug("Telegram bot token not configured, skipping notification")
        return False

    try:
        await telegram_circuit_breaker.call(_post_message, chat_id, text)
    except CircuitOpenError:
        logger.warning("Telegram circuit open, dropping message", extra={"chat_id": str(chat_id)})
        return False
    except (httpx.HTTPError, TelegramDeliveryError, ValueError) as e:
        logger.error("Failed to send Telegram message: %s", e, extra={"chat_id": str(chat_id)})
        return False

    logger.info("Telegram message sent", extra={"chat_id": str(chat_id)})
    return True
