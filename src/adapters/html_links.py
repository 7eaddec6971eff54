"""Búsqueda de enlaces en la página del SPG.

El SPG devuelve una página HTML pensada para un navegador; solo necesitamos
la URL del ancla "Subscribe to Basic Visual Voice Mail". Se compara el texto
renderizado: cada racha de espacios o saltos de línea cuenta como un espacio,
como al mostrar el HTML. Por lo demás la coincidencia es exacta (sensible a
mayúsculas, sin recortar extremos).
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from core.errors import LinkNotFound

BASIC_SUBSCRIBE_LINK_TEXT = "Subscribe to Basic Visual Voice Mail"

_WHITESPACE = re.compile(r"\s+")


def _rendered_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text)


def find_link_by_text(html: str, label: str = BASIC_SUBSCRIBE_LINK_TEXT) -> str:
    """Devuelve el `href` de la primera ancla cuyo texto es exactamente `label`.

    Lanza `LinkNotFound` con la concatenación de los textos revisados.
    """

    soup = BeautifulSoup(html or "", "html.parser")
    examined: list[str] = []
    for anchor in soup.find_all("a", href=True):
        text = _rendered_text(anchor.get_text())
        if text == label:
            return str(anchor["href"])
        examined.append(text)
    raise LinkNotFound(label, "".join(examined))
