"""
notifier.py — Avisos al operador cuando se publica (o falla) el sitio.

Cada canal implementa NotificationChannel.send() y lanza RelayError si
el aviso no llegó. Notifier reparte el evento y se queda con esos
errores: la publicación ya ocurrió y un aviso perdido no la deshace.

Uso:
    from vitrina.notifications.notifier import Notifier, Event
    notifier = Notifier([TelegramChannel(token, chat_id)])
    entregados = notifier.notify(Event.SITE_PUBLISHED, {"url": "...", "assets": 2})
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable

from vitrina.errors import RelayError
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.notifications")


class Event(Enum):
    SITE_PUBLISHED = "site_published"
    PUBLISH_FAILED = "publish_failed"


class NotificationChannel(ABC):
    """Destino de avisos (Telegram hoy)."""

    name = "channel"

    @abstractmethod
    def send(self, event: Event, data: dict[str, Any]) -> None:
        """
        Entrega un aviso.

        Raises:
            RelayError: El canal no aceptó el mensaje.
        """


class Notifier:
    """
    Reparte eventos a sus canales.

    Args:
        channels: Canales iniciales.
        enabled_events: Valores de Event a avisar. None = todos;
            valores desconocidos se ignoran.
    """

    def __init__(
        self,
        channels: Iterable[NotificationChannel] = (),
        enabled_events: Iterable[str] | None = None,
    ):
        self._channels = list(channels)
        if enabled_events is None:
            self._enabled = set(Event)
        else:
            valores = set(enabled_events)
            self._enabled = {e for e in Event if e.value in valores}

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    def add_channel(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)

    def notify(self, event: Event, data: dict[str, Any]) -> list[str]:
        """
        Envía el evento a cada canal; uno que falla no frena a los demás.

        Returns:
            Nombres de los canales que entregaron el aviso.
        """
        if event not in self._enabled:
            return []

        entregados = []
        for channel in self._channels:
            try:
                channel.send(event, data)
            except RelayError as e:
                logger.warning(f"Aviso {event.value} no entregado por {channel.name}: {e}")
                continue
            entregados.append(channel.name)
        return entregados
