"""
telegram.py — Canal de Telegram para notificaciones de Vitrina.

Envía mensajes al chat del operador via Telegram Bot API:
    - Sitio publicado / publicación fallida (templates)
    - Solicitudes de reserva (HTML ya armado por booking.py)

Usamos parse_mode HTML: solo hay que escapar < > & en los datos.

Uso:
    from vitrina.notifications.telegram import TelegramChannel
    telegram = TelegramChannel(bot_token, chat_id)
    telegram.send(Event.SITE_PUBLISHED, {"url": "...", "assets": 1})
"""

from __future__ import annotations

from typing import Any

import requests

from vitrina.config import AppConfig
from vitrina.errors import RelayError
from vitrina.notifications.notifier import Event, NotificationChannel, Notifier
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.telegram")


def escape_html(value: Any) -> str:
    """Escapa texto para parse_mode=HTML. None → ""."""
    texto = "" if value is None else str(value)
    return texto.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class TelegramChannel(NotificationChannel):
    """
    Canal de notificación via Telegram Bot API.

    Args:
        bot_token: Token del bot (de @BotFather)
        chat_id: Chat del operador
        templates: Templates por evento (usan str.format)
        timeout: Timeout de la llamada HTTP
    """

    API_BASE = "https://api.telegram.org/bot{token}"
    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        templates: dict[str, str] | None = None,
        timeout: float = 10.0,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = self.API_BASE.format(token=bot_token)
        self._timeout = timeout

        self._templates = templates or {
            Event.SITE_PUBLISHED.value: "🌐 Сайт опубликован\n🔗 {url}\n🖼 Файлов: {assets}",
            Event.PUBLISH_FAILED.value: "⚠️ Ошибка публикации\n❌ {error_message}",
        }

    def send(self, event: Event, data: dict[str, Any]) -> None:
        """
        Llena el template del evento y lo envía.

        Raises:
            RelayError: Sin template para el evento, o Telegram lo rechazó.
        """
        template = self._templates.get(event.value)
        if not template:
            raise RelayError(f"No Telegram template for event: {event.value}", stage="telegram")

        escapados = {k: escape_html(v) for k, v in data.items()}
        try:
            mensaje = template.format(**escapados)
        except KeyError as e:
            logger.error(f"Falta dato en notificación: {e}")
            mensaje = f"Событие: {event.value}\n{escape_html(data)}"

        self.send_html(mensaje)

    def send_html(self, text: str) -> None:
        """
        Envía un mensaje HTML y exige confirmación de Telegram.

        El relay de reservas lo usa directo: el visitante tiene que
        saber si su solicitud no llegó.

        Raises:
            RelayError: Timeout, error de red o respuesta ok != true.
        """
        url = f"{self._api_url}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            response = requests.post(url, json=payload, timeout=self._timeout)
        except requests.Timeout as e:
            raise RelayError("Telegram error: timeout", stage="telegram") from e
        except requests.RequestException as e:
            raise RelayError(f"Telegram error: {e}", stage="telegram") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.ok or data.get("ok") is not True:
            descripcion = data.get("description") or f"HTTP {response.status_code}"
            raise RelayError(f"Telegram error: {descripcion}", stage="telegram")

        logger.success("Mensaje de Telegram enviado")

    def is_configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)


def build_notifier(config: AppConfig) -> Notifier:
    """Construye un Notifier con los canales configurados."""
    notifier = Notifier(enabled_events=config.telegram.notify_on)
    if config.telegram.enabled:
        telegram = TelegramChannel(
            bot_token=config.telegram_bot_token or "",
            chat_id=config.telegram_chat_id or "",
        )
        if telegram.is_configured():
            notifier.add_channel(telegram)
    return notifier
