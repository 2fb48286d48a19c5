"""
booking.py — Relay de solicitudes de reserva hacia el operador.

El bloque "booking" del sitio publica un formulario (día, hora,
contacto...). Cada envío se reenvía como UN mensaje de Telegram al
operador. Sin estado: no guardamos reservas, no verificamos choques.

Uso:
    request = BookingRequest.from_payload(body)
    BookingRelay(telegram).submit(request)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from vitrina.errors import ValidationError
from vitrina.notifications.telegram import TelegramChannel, escape_html
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.booking")

DEFAULT_TITLE = "Запись"


@dataclass
class BookingRequest:
    """Datos de una solicitud de reserva enviada desde el sitio público."""
    day: str
    time: str
    contact: str
    title: str = DEFAULT_TITLE
    name: str = ""
    comment: str = ""
    page_url: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> BookingRequest:
        """
        Construye y valida una solicitud desde el JSON del formulario.

        Raises:
            ValidationError: Falta día/hora o contacto.
        """
        if not isinstance(payload, Mapping):
            payload = {}

        def campo(nombre: str) -> str:
            valor = payload.get(nombre)
            return str(valor).strip() if valor is not None else ""

        request = cls(
            title=campo("title") or DEFAULT_TITLE,
            day=campo("day"),
            time=campo("time"),
            contact=campo("contact"),
            name=campo("name"),
            comment=campo("comment"),
            page_url=campo("pageUrl"),
        )
        request.validate()
        return request

    def validate(self) -> None:
        if not self.day or not self.time:
            raise ValidationError("Missing day/time", stage="booking")
        if not self.contact:
            raise ValidationError("Missing contact", stage="booking")


def format_booking_message(request: BookingRequest) -> str:
    """
    Arma el mensaje HTML para Telegram. Las líneas opcionales
    (nombre, comentario, página) solo aparecen si tienen valor.
    """
    lineas = [
        f"🗓️ <b>{escape_html(request.title)}</b>",
        f"Дата/время: <b>{escape_html(request.day)} {escape_html(request.time)}</b>",
        f"Имя: <b>{escape_html(request.name)}</b>" if request.name else None,
        f"Контакт: <b>{escape_html(request.contact)}</b>",
        f"Комментарий: {escape_html(request.comment)}" if request.comment else None,
        f"Страница: {escape_html(request.page_url)}" if request.page_url else None,
    ]
    return "\n".join(linea for linea in lineas if linea)


class BookingRelay:
    """
    Reenvía reservas al operador.

    Args:
        channel: Canal de Telegram configurado.
    """

    def __init__(self, channel: TelegramChannel):
        self._channel = channel

    def submit(self, request: BookingRequest) -> None:
        """
        Envía la solicitud.

        Raises:
            RelayError: Telegram no aceptó el mensaje.
        """
        self._channel.send_html(format_booking_message(request))
        logger.info(f"Reserva reenviada: {request.day} {request.time}")
