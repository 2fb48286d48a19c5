"""
Vitrina — Pipeline de publicación para un editor de sitios de una página.

Este paquete contiene todo lo que pasa entre "Publicar" y el commit:
- content/       → Modelo del documento, normalización, extracción de imágenes
- publishing/    → Commit atómico sobre la Git Data API de GitHub
- notifications/ → Telegram (publicaciones y reservas)
- storage/       → Cache local de ediciones
- utils/         → Utilidades compartidas

Uso:
    python -m vitrina publish content.json
    python -m vitrina serve
    python -m vitrina status
"""

__version__ = "1.0.0"
