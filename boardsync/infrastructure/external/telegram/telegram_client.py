"""
Transporte de alertas via Telegram Bot API.
"""
import html
from typing import Optional

import httpx
from loguru import logger

from boardsync.core.config import settings


class TelegramAlertTransport:
    """
    Envia alertas (asunto + cuerpo) a un chat de Telegram.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_CHAT_ID
        self.base_url = f"https://api.telegram.org/bot{self.bot_token}"
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send(self, subject: str, body: str) -> bool:
        """
        Envia un mensaje con el asunto en negrita.

        Returns:
            bool: True si Telegram acepto el mensaje.
        """
        if not self.configured:
            logger.warning("Telegram Bot Token o Chat ID no configurados. Saltando alerta.")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": f"<b>{html.escape(subject)}</b>\n{html.escape(body)}",
            "parse_mode": "HTML",
        }
        url = f"{self.base_url}/sendMessage"

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(url, json=payload)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Error al enviar alerta por Telegram: {e}")
            return False
