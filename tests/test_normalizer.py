"""
test_normalizer.py — Tests para el normalizador de documentos.

Verificamos que:
1. Cualquier entrada produce un documento válido (nunca lanza)
2. El fallback es campo por campo
3. Los números se coercionan y acotan
4. Los grids cumplen len(cells) == cols * rows, también anidados
5. Los IDs válidos se conservan y los faltantes se generan
6. normalize es idempotente
"""

from __future__ import annotations

import json
import re

import pytest

from vitrina.content.models import (
    CONTENT_VERSION,
    ContentDocument,
    default_booking_days,
    default_site_background,
)
from vitrina.content.normalizer import (
    DEFAULT_SLOT_MINUTES,
    MAX_GRID_DEPTH,
    MAX_GRID_SIDE,
    new_block_id,
    normalize,
    normalize_block,
)


def _block(**overrides):
    base = {"id": "b1", "type": "text", "align": "left"}
    base.update(overrides)
    return base


# ================================================================
# Documento
# ================================================================

class TestNormalizeDocument:
    """Tests del documento raíz."""

    @pytest.mark.parametrize("raw", [None, 42, "hola", [1, 2], True])
    def test_entrada_no_objeto_da_documento_por_defecto(self, raw):
        """Cualquier cosa que no sea un objeto → documento por defecto."""
        doc = normalize(raw)
        assert doc == ContentDocument()
        assert doc.version == CONTENT_VERSION
        assert doc.blocks == []

    def test_version_siempre_actual(self):
        """Una versión vieja o basura se reemplaza por la actual."""
        assert normalize({"version": 99}).version == CONTENT_VERSION
        assert normalize({"version": "x"}).version == CONTENT_VERSION

    def test_fallback_por_campo_en_site(self):
        """Un subtitle inválido no tira el title válido."""
        doc = normalize({"site": {"title": "Mi panadería", "subtitle": 7}})
        assert doc.site.title == "Mi panadería"
        assert doc.site.subtitle == "Домашняя выпечка на заказ"

    def test_site_background_por_defecto(self):
        """Sin fondo, el sitio usa el gradiente por defecto."""
        doc = normalize({"site": {}})
        assert doc.site.background == default_site_background()

    def test_blocks_no_lista(self):
        """blocks que no es lista → lista vacía."""
        assert normalize({"blocks": {"a": 1}}).blocks == []

    def test_descarta_entradas_no_objeto_en_blocks(self):
        """Los elementos que no son objetos se descartan."""
        doc = normalize({"blocks": [None, 3, "x", _block(id="ok")]})
        assert [b.id for b in doc.blocks] == ["ok"]

    def test_idempotente(self):
        """normalize(normalize(x).to_dict()) == normalize(x)."""
        raw = {
            "site": {"title": "T", "background": {"type": "image", "imageDataUrl": "/a.png"}},
            "blocks": [
                _block(id="g", type="grid", grid={
                    "cols": 2.7, "rows": "1",
                    "cells": [_block(id="c1", map={"lat": "10", "lon": 20, "zoom": 40}), 5, None],
                }),
                _block(id="s", type="spacer", spacer={"height": -3}),
                _block(id="k", type="booking", booking={"title": "Reserva", "slotMinutes": 2}),
            ],
        }
        una = normalize(raw)
        dos = normalize(una.to_dict())
        assert una == dos


# ================================================================
# Bloques
# ================================================================

class TestNormalizeBlock:
    """Tests de bloques individuales."""

    def test_no_objeto_devuelve_none(self):
        assert normalize_block("texto") is None

    def test_tipo_desconocido_se_vuelve_text(self):
        """type desconocido → "text"."""
        block = normalize_block(_block(type="carousel"))
        assert block.type == "text"

    def test_video_es_tipo_valido(self):
        assert normalize_block(_block(type="video")).type == "video"

    def test_align_invalido(self):
        assert normalize_block(_block(align="justify")).align == "left"

    def test_conserva_id_valido(self):
        """Un ID existente nunca se regenera."""
        assert normalize_block(_block(id="b_abc_123")).id == "b_abc_123"

    @pytest.mark.parametrize("raw_id", [None, "", "   ", 12])
    def test_genera_id_si_falta_o_invalido(self, raw_id):
        block = normalize_block(_block(id=raw_id))
        assert re.fullmatch(r"b_[0-9a-f]+_[0-9a-f]{12}", block.id)

    def test_ids_generados_son_unicos(self):
        ids = {new_block_id() for _ in range(200)}
        assert len(ids) == 200

    def test_payloads_de_otras_variantes_se_conservan(self):
        """Un bloque text conserva la imagen de cuando era image."""
        block = normalize_block(_block(type="text", image={"src": "/a.png", "alt": "A"}))
        assert block.image.src == "/a.png"
        assert block.image.alt == "A"

    def test_payload_invalido_queda_en_none(self):
        block = normalize_block(_block(image={"src": 3}, button={"label": "x"}))
        assert block.image is None
        assert block.button is None

    def test_text_style_booleanos(self):
        block = normalize_block(_block(text={"value": "Hola", "style": {"bold": 1}}))
        assert block.text.value == "Hola"
        assert block.text.style.bold is True
        assert block.text.style.italic is False

    def test_switch_type_conserva_datos(self):
        """Cambiar de variante no borra el payload de la anterior."""
        block = normalize_block(_block(type="image", image={"src": "/a.png"}))
        block.switch_type("text")
        block.switch_type("image")
        assert block.image.src == "/a.png"

    def test_switch_type_desconocido(self):
        block = normalize_block(_block())
        with pytest.raises(ValueError):
            block.switch_type("carousel")


# ================================================================
# Coerción numérica
# ================================================================

class TestNumericFields:
    """Tests de coerción y límites numéricos."""

    def test_zoom_se_acota(self):
        alto = normalize_block(_block(map={"lat": 1, "lon": 2, "zoom": 30}))
        bajo = normalize_block(_block(map={"lat": 1, "lon": 2, "zoom": -4}))
        assert alto.map.zoom == 18
        assert bajo.map.zoom == 1

    def test_string_numerico_se_acepta(self):
        block = normalize_block(_block(map={"lat": "55.75", "lon": "37.61", "zoom": "12"}))
        assert block.map.lat == 55.75
        assert block.map.zoom == 12

    def test_bool_no_es_numero(self):
        """True no es un zoom válido: el mapa queda inválido."""
        block = normalize_block(_block(map={"lat": 1, "lon": 2, "zoom": True}))
        assert block.map is None

    def test_nan_no_es_numero(self):
        block = normalize_block(_block(spacer={"height": float("nan")}))
        assert block.spacer is None

    def test_spacer_no_negativo(self):
        block = normalize_block(_block(spacer={"height": -10}))
        assert block.spacer.height == 0

    def test_slot_minimo(self):
        block = normalize_block(_block(booking={"title": "R", "slotMinutes": 5}))
        assert block.booking.slot_minutes == 10

    def test_slot_por_defecto(self):
        block = normalize_block(_block(booking={"title": "R", "slotMinutes": "abc"}))
        assert block.booking.slot_minutes == DEFAULT_SLOT_MINUTES

    def test_booking_sin_days_usa_lunes_a_viernes(self):
        block = normalize_block(_block(booking={"title": "R"}))
        assert block.booking.days == default_booking_days()

    def test_booking_days_filtra_y_acota(self):
        block = normalize_block(_block(booking={"title": "R", "days": [
            {"dow": 9, "start": "09:00", "end": "12:00"},
            {"dow": 2, "start": 900, "end": "12:00"},
            "basura",
        ]}))
        assert len(block.booking.days) == 1
        assert block.booking.days[0].dow == 7

    def test_booking_sin_titulo_es_invalido(self):
        assert normalize_block(_block(booking={"slotMinutes": 30})).booking is None

    def test_entero_enorme_no_es_numero(self):
        """Un entero que no cabe en float se descarta como cualquier basura."""
        enorme = 10 ** 400
        doc = normalize({"blocks": [
            _block(map={"lat": enorme, "lon": 1, "zoom": 3}),
            _block(spacer={"height": enorme}),
            _block(booking={"title": "R", "slotMinutes": enorme}),
        ]})
        assert doc.blocks[0].map is None
        assert doc.blocks[1].spacer is None
        assert doc.blocks[2].booking.slot_minutes == DEFAULT_SLOT_MINUTES


# ================================================================
# Grid
# ================================================================

class TestGrid:
    """Tests del invariante len(cells) == cols * rows."""

    def test_padding_con_none(self):
        block = normalize_block(_block(type="grid", grid={"cols": 3, "rows": 2, "cells": []}))
        assert len(block.grid.cells) == 6
        assert all(c is None for c in block.grid.cells)

    def test_trunca_celdas_sobrantes(self):
        cells = [_block(id=f"c{i}") for i in range(10)]
        block = normalize_block(_block(type="grid", grid={"cols": 2, "rows": 2, "cells": cells}))
        assert [c.id for c in block.grid.cells] == ["c0", "c1", "c2", "c3"]

    def test_cols_rows_truncados_y_minimo_uno(self):
        block = normalize_block(_block(type="grid", grid={"cols": 2.9, "rows": 0}))
        assert block.grid.cols == 2
        assert block.grid.rows == 1
        assert len(block.grid.cells) == 2

    @pytest.mark.parametrize("texto", [
        '{"cols": 1e308, "rows": 1e308}',
        '{"cols": 1e12, "rows": 1e12}',
        '{"cols": 50000, "rows": 50000}',
    ])
    def test_cols_rows_se_acotan_al_maximo(self, texto):
        """Un grid gigante no reserva millones de celdas."""
        block = normalize_block(_block(type="grid", grid=json.loads(texto)))
        assert block.grid.cols == MAX_GRID_SIDE
        assert block.grid.rows == MAX_GRID_SIDE
        assert len(block.grid.cells) == MAX_GRID_SIDE * MAX_GRID_SIDE

    def test_cols_rows_por_defecto(self):
        block = normalize_block(_block(type="grid", grid={}))
        assert (block.grid.cols, block.grid.rows) == (2, 2)

    def test_celda_no_objeto_se_vuelve_none(self):
        block = normalize_block(_block(type="grid", grid={
            "cols": 2, "rows": 1, "cells": ["x", _block(id="ok")],
        }))
        assert block.grid.cells[0] is None
        assert block.grid.cells[1].id == "ok"

    def test_grid_anidado_se_normaliza_recursivamente(self):
        interno = _block(id="in", type="grid", grid={"cols": 1, "rows": 3, "cells": []})
        block = normalize_block(_block(type="grid", grid={"cols": 1, "rows": 1, "cells": [interno]}))
        anidado = block.grid.cells[0]
        assert anidado.type == "grid"
        assert len(anidado.grid.cells) == 3

    def test_profundidad_maxima(self):
        """Un anidamiento hostil se corta sin agotar la pila."""
        raw = _block(id="hoja")
        for i in range(MAX_GRID_DEPTH + 50):
            raw = _block(id=f"g{i}", type="grid", grid={"cols": 1, "rows": 1, "cells": [raw]})

        block = normalize_block(raw)
        profundidad = 0
        while block is not None and block.grid is not None:
            block = block.grid.cells[0]
            profundidad += 1
        assert profundidad <= MAX_GRID_DEPTH + 1


# ================================================================
# Fondos
# ================================================================

class TestBackground:
    """Tests de fondos: todas las variantes se conservan."""

    def test_tipo_invalido_usa_fallback(self):
        block = normalize_block(_block(background={"type": "video"}))
        assert block.background.type == "solid"

    def test_conserva_imagen_con_tipo_inactivo(self):
        block = normalize_block(_block(background={
            "type": "solid", "solid": "#fff", "imageDataUrl": "/x.png",
        }))
        assert block.background.type == "solid"
        assert block.background.image_data_url == "/x.png"

    def test_gradiente_parcial(self):
        block = normalize_block(_block(background={
            "type": "gradient", "gradient": {"from": "#000", "angle": "45"},
        }))
        assert block.background.gradient.from_color == "#000"
        assert block.background.gradient.to_color == "#1d1633"
        assert block.background.gradient.angle == 45
