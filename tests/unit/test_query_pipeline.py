from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, Mock
from urllib.parse import parse_qs, urlparse

import pytest

from dnilookup.config import Settings
from dnilookup.ops_logger import OpsLogger
from dnilookup.pipeline.extractors import ResultExtractor
from dnilookup.pipeline.fetchers.browser import BrowserResult, BrowserSession
from dnilookup.pipeline.query import QueryPipeline, build_pipeline, build_target_url
from dnilookup.schemas import QueryError, ResultItem, SearchQuery


BASE = "https://site.test/buscar/"

RESULTS_HTML = '''<html><body>
  <table>
    <tr><th>DNI</th><th>Nombre Completo</th></tr>
    <tr><td>12345678</td><td><a href="/detalle/1">Juan Perez</a></td></tr>
  </table>
</body></html>'''


def _query(**kw):
    defaults = dict(nombres="Juan", apellido_paterno="Perez", apellido_materno="Lopez")
    defaults.update(kw)
    return SearchQuery(**defaults)


def _session(html: str | None = RESULTS_HTML, error: str | None = None):
    session = Mock(spec=BrowserSession)
    session.fetch = AsyncMock(return_value=BrowserResult(
        url=BASE,
        status_code=200 if error is None else 0,
        html=html if error is None else None,
        error=error,
    ))
    session.close = AsyncMock()
    return session


def test_honeypot_returns_empty_success_without_navigation():
    session = _session()
    pipeline = QueryPipeline(BASE, browser_session=session)

    result = asyncio.run(pipeline.run(_query(company="ACME")))

    assert result.ok is True
    assert result.items == []
    assert result.error is None
    session.fetch.assert_not_called()


def test_honeypot_wins_even_with_missing_fields():
    session = _session()
    pipeline = QueryPipeline(BASE, browser_session=session)

    result = asyncio.run(pipeline.run(SearchQuery(company="bot")))

    assert result.ok is True
    session.fetch.assert_not_called()


@pytest.mark.parametrize("missing", ["nombres", "apellido_paterno", "apellido_materno"])
def test_missing_field_is_invalid_input(missing):
    session = _session()
    pipeline = QueryPipeline(BASE, browser_session=session)

    result = asyncio.run(pipeline.run(_query(**{missing: "   "})))

    assert result.ok is False
    assert result.error == QueryError.INVALID_INPUT
    assert result.items == []
    session.fetch.assert_not_called()


def test_fetch_failure_is_upstream_unavailable():
    pipeline = QueryPipeline(BASE, browser_session=_session(error="net::ERR_CONNECTION_RESET"))

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is False
    assert result.error == QueryError.UPSTREAM_UNAVAILABLE
    assert result.items == []


def test_empty_page_is_upstream_unavailable():
    session = _session(html="")
    pipeline = QueryPipeline(BASE, browser_session=session)

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is False
    assert result.error == QueryError.UPSTREAM_UNAVAILABLE
    assert pipeline.last_ops_record["outcome"] == "upstream_unavailable"


def test_block_page_is_blocked_by_defenses():
    html = "<html><title>Just a moment...</title><body>Checking your browser. Cloudflare</body></html>"
    pipeline = QueryPipeline(BASE, browser_session=_session(html=html))

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is False
    assert result.error == QueryError.BLOCKED_BY_DEFENSES
    assert result.items == []
    assert pipeline.last_ops_record["blocked_reasons"]


def test_success_extracts_records_with_absolute_links():
    session = _session()
    pipeline = QueryPipeline(BASE, browser_session=session)

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is True
    assert result.items == [ResultItem(
        dni="12345678",
        nombre_completo="Juan Perez",
        enlace="https://site.test/detalle/1",
        extra="12345678 Juan Perez",
    )]
    target_url, referer = session.fetch.await_args.args
    assert referer == BASE
    assert target_url == result.target_url


def test_zero_records_is_still_success():
    pipeline = QueryPipeline(BASE, browser_session=_session(html="<html><body>Sin resultados</body></html>"))

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is True
    assert result.items == []


def test_unexpected_error_maps_to_internal_error():
    extractor = Mock(spec=ResultExtractor)
    extractor.extract_with_tier.side_effect = RuntimeError("parser exploded")
    pipeline = QueryPipeline(BASE, browser_session=_session(), extractor=extractor)

    result = asyncio.run(pipeline.run(_query()))

    assert result.ok is False
    assert result.error == QueryError.INTERNAL_ERROR
    assert "parser exploded" in result.message
    assert result.items == []


def test_build_target_url_sets_search_params():
    url = build_target_url(BASE, _query(nombres="Juan Carlos"))

    parsed = urlparse(url)
    params = parse_qs(parsed.query, keep_blank_values=True)
    assert parsed.netloc == "site.test"
    assert parsed.path == "/buscar/"
    assert params["nombres"] == ["Juan Carlos"]
    assert params["apellido_paterno"] == ["Perez"]
    assert params["apellido_materno"] == ["Lopez"]
    assert params["company"] == [""]


def test_ops_record_emitted_to_logger(tmp_path):
    log_path = tmp_path / "ops.log"
    pipeline = QueryPipeline(BASE, browser_session=_session(), ops_logger=OpsLogger(log_path))

    asyncio.run(pipeline.run(_query()))

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["dnl_ops"] == 1
    assert record["outcome"] == "ok"
    assert record["tier"] == "table"
    assert record["counts"] == {"items": 1}
    assert set(record["durations"]) == {"fetch_s", "extract_s", "total_s"}


def test_close_closes_browser_session():
    session = _session()
    pipeline = QueryPipeline(BASE, browser_session=session)

    asyncio.run(pipeline.close())

    session.close.assert_awaited_once()


def test_build_pipeline_uses_settings():
    settings = Settings(
        target_url="https://other.test/search",
        proxy_url="http://proxy.test:3128",
        navigation_timeout_ms=1000,
        settle_timeout_ms=500,
        block_limit=3,
        bare_limit=7,
        name_pattern=r"\D+?([A-Z]+)",
    )

    pipeline = build_pipeline(settings)

    assert pipeline.target_base_url == "https://other.test/search"
    assert pipeline.browser_session.proxy_url == "http://proxy.test:3128"
    assert pipeline.browser_session.navigation_timeout_ms == 1000
    assert pipeline.browser_session.settle_timeout_ms == 500
    assert pipeline.extractor.block_limit == 3
    assert pipeline.extractor.bare_limit == 7
    assert pipeline.extractor.name_re.pattern == r"\D+?([A-Z]+)"
    assert pipeline.ops_logger is None
