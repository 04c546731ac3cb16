"""
Result Extraction Logic - Identity Records from Search Result Pages

Turns arbitrary HTML into deduplicated ``ResultItem`` records using a cascade
of heuristics, tried in order until one produces anything:

1. Tables whose headers mention DNI / nombre / paterno / materno
2. Class-tagged blocks (result/resultado/search), articles and lists
3. Bare 8-digit identifiers anywhere in the body text

Each tier is a plain ``(parser, base_url) -> list[ResultItem]`` callable so it
can be exercised on its own.
"""

import re
from typing import Callable, List, Optional, Tuple

from selectolax.parser import HTMLParser, Node

from ..schemas import ResultItem
from .identifiers import DNI_RE, find_all_dnis, find_dni_in_text, norm
from .urls import absolutize_url


DEFAULT_BLOCK_LIMIT = 12
DEFAULT_BARE_LIMIT = 25
DEFAULT_EXTRA_MAX_CHARS = 240
# Applied right after the identifier inside a block's text; group 1 is the name
DEFAULT_NAME_PATTERN = r"\D+?([A-ZÁÉÍÓÚÑ][A-Za-zÁÉÍÓÚÑ\s]{3,80})"

_BLOCK_CLASS_RE = re.compile(r"result|resultado|search")
_BLOCK_TAGS = {"article", "ul", "ol"}

# Elements whose boundaries separate words; inline tags (b, span, a, mark) do not
_BREAK_TAGS = frozenset({
    "td", "th", "tr", "table", "thead", "tbody", "tfoot", "caption",
    "div", "p", "br", "hr", "li", "ul", "ol", "dl", "dt", "dd",
    "article", "section", "header", "footer", "aside", "nav", "main",
    "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre", "form", "fieldset",
})

Tier = Callable[[HTMLParser, str], List[ResultItem]]


class ResultExtractor:
    """
    Extracts identity records from a rendered results page.

    The heuristic limits are constructor arguments rather than constants since
    nothing guarantees they suit every target site.
    """

    def __init__(
        self,
        *,
        block_limit: int = DEFAULT_BLOCK_LIMIT,
        bare_limit: int = DEFAULT_BARE_LIMIT,
        extra_max_chars: int = DEFAULT_EXTRA_MAX_CHARS,
        name_pattern: str = DEFAULT_NAME_PATTERN,
    ) -> None:
        self.block_limit = int(block_limit)
        self.bare_limit = int(bare_limit)
        self.extra_max_chars = int(extra_max_chars)
        self.name_re = re.compile(name_pattern)

        # Header classification patterns, matched independently per column
        self.header_patterns = {
            'dni': re.compile(r"dni"),
            'name': re.compile(r"(nombre|nombres|nombre completo)"),
            'paterno': re.compile(r"paterno"),
            'materno': re.compile(r"materno"),
        }

        self.tiers: List[Tuple[str, Tier]] = [
            ('table', self.extract_tables),
            ('block', self.extract_blocks),
            ('bare', self.extract_bare_dnis),
        ]

    def extract(self, html: str, base_url: str) -> List[ResultItem]:
        """Run the cascade over ``html`` and return deduplicated records."""
        _, items = self.extract_with_tier(html, base_url)
        return items

    def extract_with_tier(self, html: str, base_url: str) -> Tuple[Optional[str], List[ResultItem]]:
        """Like ``extract`` but also report which tier produced the records."""
        if not html:
            return None, []
        parser = HTMLParser(html)
        for name, tier in self.tiers:
            items = tier(parser, base_url)
            if items:
                return name, self._postprocess_and_dedup(items)
        return None, []

    # -------------------------
    # Tier 1: tables
    # -------------------------
    def _header_cells(self, tbl: Node) -> List[Node]:
        thead = tbl.css_first('thead')
        if thead is not None:
            return thead.css('th') or thead.css('td')
        first_row = tbl.css_first('tr')
        if first_row is None:
            return []
        return first_row.css('th, td')

    def _classify_headers(self, headers: List[str]) -> dict:
        col_map = {}
        for kind, rx in self.header_patterns.items():
            for idx, h in enumerate(headers):
                if rx.search(h):
                    col_map[kind] = idx
                    break
        return col_map

    def extract_tables(self, parser: HTMLParser, base_url: str) -> List[ResultItem]:
        """Rows of tables whose headers look like identity columns."""
        results: List[ResultItem] = []
        for tbl in parser.css('table'):
            headers = [norm(_text(h)).lower() for h in self._header_cells(tbl)]
            if not headers:
                continue
            col_map = self._classify_headers(headers)
            if not col_map:
                # No identity-looking column; assume an unrelated table
                continue

            has_thead = tbl.css_first('thead') is not None
            for i, tr in enumerate(tbl.css('tr')):
                if i == 0 and not has_thead:
                    continue
                tds = tr.css('td')
                if not tds:
                    continue

                def get_cell(kind: str) -> str:
                    idx = col_map.get(kind)
                    if idx is None or idx >= len(tds):
                        return ''
                    return norm(_text(tds[idx]))

                row_text = norm(_text(tr))
                dni = get_cell('dni') or find_dni_in_text(row_text) or ''
                if 'name' in col_map:
                    nombre = get_cell('name')
                else:
                    nombre = ' '.join(p for p in (get_cell('paterno'), get_cell('materno')) if p)

                href = _first_href(tr)
                if not href:
                    idx = col_map.get('name', 0)
                    if idx < len(tds):
                        href = _first_href(tds[idx], 'a')

                item = self._make_item(dni, nombre, href, row_text, base_url)
                if item is not None:
                    results.append(item)
        return results

    # -------------------------
    # Tier 2: tagged blocks
    # -------------------------
    def _candidate_blocks(self, parser: HTMLParser) -> List[Node]:
        root = parser.root
        if root is None:
            return []
        blocks: List[Node] = []
        for node in root.traverse():
            if node.tag in _BLOCK_TAGS or _BLOCK_CLASS_RE.search(node.attributes.get('class') or ''):
                blocks.append(node)
                if len(blocks) >= self.block_limit:
                    break
        return blocks

    def extract_blocks(self, parser: HTMLParser, base_url: str) -> List[ResultItem]:
        """Result-like blocks containing an identifier; name guessed from the text after it."""
        results: List[ResultItem] = []
        for el in self._candidate_blocks(parser):
            block_text = norm(_text(el))
            m = DNI_RE.search(block_text)
            if not m:
                continue
            nombre = None
            nm = self.name_re.match(block_text, m.end())
            if nm:
                nombre = norm(nm.group(1))
            item = self._make_item(
                m.group(0), nombre, _first_href(el), block_text[: self.extra_max_chars], base_url
            )
            if item is not None:
                results.append(item)
        return results

    # -------------------------
    # Tier 3: bare identifiers
    # -------------------------
    def extract_bare_dnis(self, parser: HTMLParser, base_url: str) -> List[ResultItem]:
        body = parser.body or parser.root
        text = norm(_text(body)) if body is not None else ''
        return [ResultItem(dni=dni) for dni in find_all_dnis(text, limit=self.bare_limit)]

    # -------------------------
    # Normalization and dedup
    # -------------------------
    def _make_item(
        self,
        dni: Optional[str],
        nombre: Optional[str],
        href: Optional[str],
        extra: Optional[str],
        base_url: str,
    ) -> Optional[ResultItem]:
        item = ResultItem(
            dni=norm(dni),
            nombre_completo=norm(nombre),
            enlace=absolutize_url(norm(href), base_url),
            extra=norm(extra),
        )
        return item if item.has_identity() else None

    def _postprocess_and_dedup(self, items: List[ResultItem]) -> List[ResultItem]:
        seen = set()
        out: List[ResultItem] = []
        for item in items:
            key = item.identity_key()
            if key in seen:
                continue
            seen.add(key)
            out.append(item)
        return out


def _text(node: Node) -> str:
    """Text of ``node`` with a space at block and cell boundaries only.

    Inline markup (``1234<b>5678</b>``, ``JUAN<mark>ITO</mark>``) stays glued,
    while adjacent cells (``<td>12345678</td><td>Juan</td>``) do not merge.
    """
    parts: List[str] = []
    _collect_text(node, parts)
    return "".join(parts)


def _collect_text(node: Node, parts: List[str]) -> None:
    for child in node.iter(include_text=True):
        # text_content is None for element nodes
        text = child.text_content
        if text is not None:
            parts.append(text)
        elif child.tag in _BREAK_TAGS:
            parts.append(" ")
            _collect_text(child, parts)
            parts.append(" ")
        else:
            _collect_text(child, parts)


def _first_href(node: Node, selector: str = 'a[href]') -> str:
    a = node.css_first(selector)
    if a is None:
        return ''
    return a.attributes.get('href') or ''
