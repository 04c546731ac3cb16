"""
DNI Lookup - Query Pipeline

Browser fetch, anti-bot classification and the heuristic result extractor,
wired together by ``QueryPipeline``.
"""

from .blocking import BlockDecision, detect_block, is_blocked
from .extractors import ResultExtractor
from .query import QueryPipeline, QueryResult, build_pipeline, build_target_url

__all__ = [
    'BlockDecision',
    'detect_block',
    'is_blocked',
    'ResultExtractor',
    'QueryPipeline',
    'QueryResult',
    'build_pipeline',
    'build_target_url',
]
