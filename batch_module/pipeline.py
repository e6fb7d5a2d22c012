"""
Row-isolated batch resolution.

BatchPipeline takes an ordered sequence of spreadsheet rows, resolves the
domain found in each one and returns one output row per input row in the
same order. Rows run on a bounded pool of asyncio workers fed from an
index-stamped queue; results land in a pre-sized list keyed by index, so
completion order never leaks into output order.
"""
from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from dotenv import load_dotenv

from dns_module.dns_fetcher import ConcurrentResolver
from dns_module.dns_utils import normalize_domain, format_bundle_fields
from dns_module.logger import get_child_logger

from .columns import DomainExtractor, find_domain_candidate

load_dotenv()

DEFAULT_MAX_CONCURRENCY = int(os.getenv("BATCH_MAX_CONCURRENCY", "10"))

ERROR_FIELD = "Error"

STATUS_RESOLVED = "resolved"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"

log = get_child_logger("batch_pipeline")


@dataclass(frozen=True)
class BatchRowResult:
    index: int
    status: str  # resolved, skipped, error
    row: Dict[str, Any]


def _copy_row(row: Any) -> Dict[str, Any]:
    return dict(row) if isinstance(row, Mapping) else {}


class BatchPipeline:
    def __init__(
        self,
        resolver: Optional[ConcurrentResolver] = None,
        extractor: DomainExtractor = find_domain_candidate,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        self.resolver = resolver or ConcurrentResolver()
        self.extractor = extractor
        self.max_concurrency = max(1, int(max_concurrency))

    async def process(self, rows: Sequence[Mapping]) -> List[Dict[str, Any]]:
        """One output row per input row, input order preserved."""
        return [result.row for result in await self.process_results(rows)]

    async def process_results(self, rows: Sequence[Mapping]) -> List[BatchRowResult]:
        rows = list(rows)
        results: List[Optional[BatchRowResult]] = [None] * len(rows)
        if not rows:
            return []

        queue: asyncio.Queue = asyncio.Queue()
        for index, row in enumerate(rows):
            queue.put_nowait((index, row))

        async def _worker() -> None:
            while True:
                try:
                    index, row = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[index] = await self._process_row(index, row)

        workers = min(self.max_concurrency, len(rows))
        log.info("Processing {} row(s) with {} worker(s)", len(rows), workers)
        await asyncio.gather(*(_worker() for _ in range(workers)))

        counts: Dict[str, int] = {}
        for result in results:
            counts[result.status] = counts.get(result.status, 0) + 1
        log.info("Batch finished: {}", counts)
        return results

    async def _process_row(self, index: int, row: Mapping) -> BatchRowResult:
        try:
            candidate = self.extractor(row)
            if candidate is None or not str(candidate).strip():
                return BatchRowResult(index, STATUS_SKIPPED, _copy_row(row))

            domain = normalize_domain(str(candidate), strip_path=True)
            if not domain:
                return BatchRowResult(index, STATUS_SKIPPED, _copy_row(row))

            bundle = await self.resolver.resolve(domain)
            out = dict(row)
            out.update(format_bundle_fields(bundle))
            return BatchRowResult(index, STATUS_RESOLVED, out)
        except Exception as e:
            log.exception("Row {} failed: {}", index, e)
            out = _copy_row(row)
            out[ERROR_FIELD] = f"Error processing row: {e}"
            return BatchRowResult(index, STATUS_ERROR, out)


__all__ = [
    "BatchPipeline",
    "BatchRowResult",
    "DEFAULT_MAX_CONCURRENCY",
    "ERROR_FIELD",
    "STATUS_RESOLVED",
    "STATUS_SKIPPED",
    "STATUS_ERROR",
]
