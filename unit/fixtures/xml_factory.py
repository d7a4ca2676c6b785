"""Factory for creating raw export documents."""

from typing import Optional
from xml.sax.saxutils import escape


class XmlFactory:
    """Builds Congress exports, Senate exports and the Senate listing page."""

    @staticmethod
    def congress_entry(
        numexpediente: Optional[str] = "121/000012",
        objeto: Optional[str] = "Proyecto de Ley de protección del medio ambiente.",
        **elements: str,
    ) -> dict[str, str]:
        """Raw entry with upper-case element names, as the portal emits."""
        entry = {}
        if numexpediente is not None:
            entry["NUMEXPEDIENTE"] = numexpediente
        if objeto is not None:
            entry["OBJETO"] = objeto
        entry.update({k.upper(): v for k, v in elements.items()})
        return entry

    @staticmethod
    def congress_export(
        entries: list[dict[str, str]],
        root: str = "results",
        item: str = "result",
    ) -> str:
        """Serialize entries under ``<root><item>...</item></root>``."""
        parts = ['<?xml version="1.0" encoding="UTF-8"?>', f"<{root}>"]
        for entry in entries:
            parts.append(f"  <{item}>")
            for name, value in entry.items():
                parts.append(f"    <{name}>{escape(value)}</{name}>")
            parts.append(f"  </{item}>")
        parts.append(f"</{root}>")
        return "\n".join(parts)

    @staticmethod
    def senate_law(
        titulo: str,
        boe: str = "",
        url_boe: str = "",
        organic: bool = False,
    ) -> tuple[bool, str]:
        """One law element of the structured export."""
        tag = "detalleLeyOrganica" if organic else "detalleLey"
        return organic, (
            f"<{tag}><titulo>{escape(titulo)}</titulo>"
            f"<boe>{escape(boe)}</boe><urlBoe>{escape(url_boe)}</urlBoe></{tag}>"
        )

    @staticmethod
    def senate_export(laws: list[tuple[bool, str]]) -> str:
        """Structured export with organic and ordinary law sections."""
        organic = "".join(xml for is_organic, xml in laws if is_organic)
        ordinary = "".join(xml for is_organic, xml in laws if not is_organic)
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            "<leyesAprobadas>"
            f"<leyesOrganicas>{organic}</leyesOrganicas>"
            f"<leyes>{ordinary}</leyes>"
            "</leyesAprobadas>"
        )

    @staticmethod
    def approved_laws_page(items: list[tuple[str, str]]) -> str:
        """Listing page with one (title, gazette line) block per law."""
        blocks = "".join(
            f"<div class='ley'><h3>{escape(title)}</h3><p>{escape(line)}</p></div>"
            for title, line in items
        )
        return f"<html><body><div id='content'>{blocks}</div></body></html>"
