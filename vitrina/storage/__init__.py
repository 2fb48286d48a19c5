"""storage/ — Persistencia local (cache de ediciones en SQLite)."""
