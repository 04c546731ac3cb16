from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

from .fetchers.browser import BrowserSession
from .blocking import detect_block
from .extractors import ResultExtractor
from .urls import with_query_params
from ..ops_logger import OpsLogger
from ..schemas import QueryError, ResultItem, SearchQuery


ERROR_MESSAGES: Dict[QueryError, str] = {
    QueryError.INVALID_INPUT: "Faltan campos requeridos.",
    QueryError.UPSTREAM_UNAVAILABLE: "No se pudo obtener el contenido (bloqueo o error remoto).",
    QueryError.BLOCKED_BY_DEFENSES: (
        "Bloqueo anti-bot detectado por Cloudflare. "
        "Intenta de nuevo más tarde o usa un proxy diferente."
    ),
    QueryError.INTERNAL_ERROR: "Error interno del servidor.",
}


@dataclass
class QueryResult:
    """Outcome of one search: records (possibly none) or a typed failure, never both."""
    ok: bool
    items: List[ResultItem] = field(default_factory=list)
    error: Optional[QueryError] = None
    message: Optional[str] = None
    target_url: Optional[str] = None

    @classmethod
    def success(cls, items: List[ResultItem], target_url: Optional[str] = None) -> "QueryResult":
        return cls(ok=True, items=list(items), target_url=target_url)

    @classmethod
    def failure(cls, error: QueryError, *, message: Optional[str] = None, target_url: Optional[str] = None) -> "QueryResult":
        return cls(ok=False, items=[], error=error, message=message or ERROR_MESSAGES[error], target_url=target_url)


def build_target_url(base_url: str, query: SearchQuery) -> str:
    """Search URL for ``query``: the base URL with the name fields set and the trap field empty."""
    return with_query_params(base_url, {
        "nombres": query.nombres,
        "apellido_paterno": query.apellido_paterno,
        "apellido_materno": query.apellido_materno,
        "company": "",
    })


class QueryPipeline:
    """Validate -> fetch (browser) -> block check -> extract.

    Honeypot queries succeed empty without touching the network; everything
    else either yields records or one ``QueryError``.
    """

    def __init__(
        self,
        target_base_url: str,
        *,
        browser_session: Optional[BrowserSession] = None,
        extractor: Optional[ResultExtractor] = None,
        ops_logger: Optional[OpsLogger] = None,
    ) -> None:
        self.target_base_url = target_base_url
        self.browser_session = browser_session or BrowserSession()
        self.extractor = extractor or ResultExtractor()
        self.ops_logger = ops_logger
        self.last_ops_record: Optional[Dict[str, Any]] = None

    async def run(self, query: SearchQuery) -> QueryResult:
        t0 = time.perf_counter()
        t_fetch = 0.0
        t_extract = 0.0
        tier: Optional[str] = None
        block_reasons: List[str] = []
        target_url: Optional[str] = None

        def _finish(result: QueryResult, outcome: str) -> QueryResult:
            record = {
                "dnl_ops": 1,
                "target_url": target_url,
                "outcome": outcome,
                "error": result.error.value if result.error else None,
                "blocked_reasons": list(block_reasons),
                "counts": {"items": len(result.items)},
                "tier": tier,
                "durations": {
                    "fetch_s": round(t_fetch, 4),
                    "extract_s": round(t_extract, 4),
                    "total_s": round(max(0.0, time.perf_counter() - t0), 4),
                },
            }
            self.last_ops_record = record
            if self.ops_logger is not None:
                self.ops_logger.emit(record)
            return result

        if query.is_trap:
            return _finish(QueryResult.success([]), "honeypot")
        if not query.is_complete:
            return _finish(QueryResult.failure(QueryError.INVALID_INPUT), "invalid_input")

        try:
            target_url = build_target_url(self.target_base_url, query)

            t_fetch_start = time.perf_counter()
            fetched = await self.browser_session.fetch(target_url, self.target_base_url)
            t_fetch = time.perf_counter() - t_fetch_start
            if not fetched.ok:
                return _finish(
                    QueryResult.failure(QueryError.UPSTREAM_UNAVAILABLE, target_url=target_url),
                    "upstream_unavailable",
                )

            decision = detect_block(fetched.html)
            if decision.blocked:
                block_reasons = decision.reasons
                print(f"blocked by anti-bot: reasons={decision.reasons}")
                return _finish(
                    QueryResult.failure(QueryError.BLOCKED_BY_DEFENSES, target_url=target_url),
                    "blocked",
                )

            t_ext_start = time.perf_counter()
            tier, items = self.extractor.extract_with_tier(fetched.html or "", self.target_base_url)
            t_extract = time.perf_counter() - t_ext_start
            return _finish(QueryResult.success(items, target_url=target_url), "ok")
        except Exception as e:
            return _finish(
                QueryResult.failure(QueryError.INTERNAL_ERROR, message=f"Pipeline error: {e}", target_url=target_url),
                "internal_error",
            )

    async def close(self) -> None:
        """Clean up resources."""
        await self.browser_session.close()


def build_pipeline(settings, *, ops_logger: Optional[OpsLogger] = None) -> QueryPipeline:
    """Wire a pipeline from resolved ``Settings``."""
    session = BrowserSession(
        navigation_timeout_ms=settings.navigation_timeout_ms,
        settle_timeout_ms=settings.settle_timeout_ms,
        proxy_url=settings.proxy_url,
        headless=settings.headless,
    )
    extractor = ResultExtractor(
        block_limit=settings.block_limit,
        bare_limit=settings.bare_limit,
        extra_max_chars=settings.extra_max_chars,
        name_pattern=settings.name_pattern,
    )
    if ops_logger is None and (settings.ops_log_path or settings.ops_stdout):
        ops_logger = OpsLogger(settings.ops_log_path, also_stdout=settings.ops_stdout)
    return QueryPipeline(
        settings.target_url,
        browser_session=session,
        extractor=extractor,
        ops_logger=ops_logger,
    )
