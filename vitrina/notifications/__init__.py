"""
notifications/ — Avisos al operador del sitio.

Módulos:
- notifier.py → Interfaz de canales + Notifier (nunca bloquea el flujo)
- telegram.py → Canal de Telegram Bot API
- booking.py  → Relay de solicitudes de reserva
"""
