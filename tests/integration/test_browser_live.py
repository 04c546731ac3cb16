"""
Live browser tests: launch real Chromium and run the full pipeline against a
page written to disk.

Usage:
    DNL_RUN_PW_TESTS=1 pytest tests/integration -v

Requirements:
    - DNL_RUN_PW_TESTS=1
    - Playwright browsers installed (playwright install chromium)
"""

import asyncio
import os

import pytest

from dnilookup.pipeline.fetchers.browser import BrowserSession
from dnilookup.pipeline.query import QueryPipeline
from dnilookup.schemas import SearchQuery

skip_live = pytest.mark.skipif(
    os.getenv("DNL_RUN_PW_TESTS", "0") != "1",
    reason="Set DNL_RUN_PW_TESTS=1 to run live Playwright tests"
)

RESULTS_PAGE = """<html><body>
<div class="resultado">
  <table>
    <thead><tr><th>DNI</th><th>Nombres</th><th>Apellido Paterno</th><th>Apellido Materno</th></tr></thead>
    <tbody>
      <tr><td>12345678</td><td>Juan</td><td>Perez</td><td>Lopez</td></tr>
      <tr><td>23456789</td><td>Juan Carlos</td><td>Perez</td><td>Diaz</td></tr>
    </tbody>
  </table>
</div>
</body></html>"""


@skip_live
def test_pipeline_against_local_page(tmp_path):
    page = tmp_path / "buscar.html"
    page.write_text(RESULTS_PAGE, encoding="utf-8")
    base_url = page.as_uri()

    pipeline = QueryPipeline(
        base_url,
        browser_session=BrowserSession(navigation_timeout_ms=15000, settle_timeout_ms=2000),
    )

    async def scenario():
        try:
            return await pipeline.run(SearchQuery(nombres="Juan", apellido_paterno="Perez", apellido_materno="Lopez"))
        finally:
            await pipeline.close()

    result = asyncio.run(scenario())

    assert result.ok is True
    assert [it.dni for it in result.items] == ["12345678", "23456789"]
    assert result.items[0].nombre_completo == "Juan"
    assert pipeline.last_ops_record["tier"] == "table"


@skip_live
def test_browser_is_reused_across_fetches(tmp_path):
    page = tmp_path / "p.html"
    page.write_text("<html><body><p>hola</p></body></html>", encoding="utf-8")
    session = BrowserSession(navigation_timeout_ms=15000, settle_timeout_ms=500)

    async def scenario():
        try:
            first = await session.fetch(page.as_uri(), page.as_uri())
            second = await session.fetch(page.as_uri(), page.as_uri())
            return first, second
        finally:
            await session.close()

    first, second = asyncio.run(scenario())

    assert first.ok and second.ok
    assert "hola" in first.html
    assert session.launch_count == 1
