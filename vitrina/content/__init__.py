"""
content/ — El documento de contenido del sitio.

Módulos:
- models.py     → Dataclasses del documento (sitio, fondos, bloques, grid)
- normalizer.py → Valida y repara documentos no confiables
- assets.py     → Extrae imágenes inline (data: URLs) a archivos
"""
