from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from schooldesk.config import get_settings


logger = logging.getLogger(__name__)

LINK_LABEL = '👉 คลิกเพื่อเปิดดูเอกสาร'


@dataclass
class TelegramConfig:
    bot_token: str | None
    api_base: str = 'https://api.telegram.org'
    timeout_seconds: int = 15


def build_message(message: str, link_url: str | None = None) -> str:
    if not link_url:
        return message
    return f'{message}\n\n<a href="{link_url}">{LINK_LABEL}</a>'


class TelegramNotifier:
    """Fire-and-forget Bot API sender; failures are logged, never raised."""

    def __init__(self, cfg: TelegramConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        self._transport = transport

    @classmethod
    def from_settings(cls) -> 'TelegramNotifier':
        settings = get_settings()
        return cls(
            TelegramConfig(
                bot_token=settings.telegram_bot_token,
                api_base=settings.telegram_api_base,
                timeout_seconds=settings.telegram_timeout_seconds,
            )
        )

    @property
    def configured(self) -> bool:
        return bool(self.cfg.bot_token)

    async def send(self, chat_id: str | None, message: str, link_url: str | None = None) -> bool:
        if not self.configured or not chat_id:
            logger.warning('Telegram bot token or chat id is missing')
            return False

        url = f"{self.cfg.api_base.rstrip('/')}/bot{self.cfg.bot_token}/sendMessage"
        payload = {
            'chat_id': chat_id,
            'text': build_message(message, link_url),
            'parse_mode': 'HTML',
        }
        try:
            async with httpx.AsyncClient(
                timeout=max(5, int(self.cfg.timeout_seconds)),
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error('Failed to send Telegram message: %s', exc)
            return False

        if not isinstance(data, dict) or not data.get('ok'):
            logger.error('Telegram API error: %s', data)
            return False
        logger.info('Telegram notification sent to %s', chat_id)
        return True
