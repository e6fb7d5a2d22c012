import asyncio
import sys
import os
import json
import argparse
import time
from pathlib import Path
from typing import Optional

# Ensure the current directory is in sys.path so we can import modules
sys.path.insert(0, os.getcwd())

from dotenv import load_dotenv

# Import our modules
from dns_module.dns_fetcher import ConcurrentResolver, DEFAULT_DOMAIN_TIMEOUT_S
from dns_module.dns_records import RecordBundle
from dns_module.dns_utils import BUNDLE_FIELDS, normalize_domain
from dns_module.dns_lookup import set_default_semaphore
from dns_module.logger import configure_logging, get_child_logger
from batch_module.columns import extractor_from_setting
from batch_module.pipeline import BatchPipeline, DEFAULT_MAX_CONCURRENCY, STATUS_SKIPPED
from batch_module.spreadsheet import SpreadsheetError, read_rows, write_rows, output_filename

load_dotenv()

INCLUDE_UNRESOLVED = os.getenv("BATCH_INCLUDE_UNRESOLVED", "false").strip().lower() in ("1", "true", "yes", "on")
DOMAIN_COLUMN = os.getenv("BATCH_DOMAIN_COLUMN")

log = get_child_logger("main")


async def lookup_domain(raw: str, resolver: Optional[ConcurrentResolver] = None) -> RecordBundle:
    """
    Single-domain path: normalize, then resolve every record type.
    Never raises for DNS failures; they end up in the bundle's error slots.
    """
    domain = normalize_domain(raw)
    resolver = resolver or ConcurrentResolver()
    t0 = time.time()
    bundle = await resolver.resolve(domain)
    log.info("Looked up {} in {}ms", domain, round((time.time() - t0) * 1000, 2))
    return bundle


def build_pipeline(
    resolver: Optional[ConcurrentResolver] = None,
    column: Optional[str] = DOMAIN_COLUMN,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> BatchPipeline:
    return BatchPipeline(
        resolver=resolver,
        extractor=extractor_from_setting(column),
        max_concurrency=max_concurrency,
    )


async def process_workbook(
    data: bytes,
    filename: str,
    pipeline: Optional[BatchPipeline] = None,
    include_unresolved: bool = INCLUDE_UNRESOLVED,
) -> bytes:
    """
    Batch job: read the document, resolve each row, write the result document.

    Raises SpreadsheetError when the input can't be read or has no rows.
    When no row has a usable domain the result is a header-only sheet.
    Row-level failures never raise.
    """
    rows = read_rows(data, filename)
    pipeline = pipeline or build_pipeline()

    t0 = time.time()
    results = await pipeline.process_results(rows)
    out_rows = [r.row for r in results if include_unresolved or r.status != STATUS_SKIPPED]
    if not out_rows:
        log.warning("No rows with a usable domain in {}", filename)
        columns = list(dict.fromkeys([*rows[0], *BUNDLE_FIELDS]))
        return write_rows([], columns=columns)

    log.info(
        "Processed {} ({} rows in, {} rows out) in {}ms",
        filename,
        len(rows),
        len(out_rows),
        round((time.time() - t0) * 1000, 2),
    )
    return write_rows(out_rows)


async def main():
    parser = argparse.ArgumentParser(description="DNS record lookup")
    parser.add_argument("domain", nargs="?", help="Domain or URL to look up")
    parser.add_argument("--input", help="Spreadsheet (.xlsx/.xls/.csv) to process in batch mode")
    parser.add_argument("--output", help="Where to write the result workbook (batch mode)")
    parser.add_argument("--column", default=DOMAIN_COLUMN, help="Column holding the domain (default: auto-detect)")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_MAX_CONCURRENCY, help="Rows resolved at once")
    parser.add_argument("--include-unresolved", action="store_true", default=INCLUDE_UNRESOLVED,
                        help="Keep rows without a usable domain in the output")
    parser.add_argument("--timeout", type=float, default=DEFAULT_DOMAIN_TIMEOUT_S, help="Per-lookup deadline in seconds")
    parser.add_argument("--max-queries", type=int, help="DNS queries in flight at once (default: DNS_SEMAPHORE_LIMIT)")
    parser.add_argument("--pretty", action="store_true", help="Pretty print JSON output")
    args = parser.parse_args()

    if not args.domain and not args.input:
        print("Error: a domain argument or --input is required.")
        sys.exit(1)

    if args.max_queries:
        set_default_semaphore(args.max_queries)
    resolver = ConcurrentResolver(domain_timeout_s=args.timeout)

    if args.input:
        src = Path(args.input)
        pipeline = build_pipeline(resolver, column=args.column, max_concurrency=args.concurrency)
        try:
            document = await process_workbook(
                src.read_bytes(), src.name, pipeline, include_unresolved=args.include_unresolved
            )
        except (OSError, SpreadsheetError) as e:
            log.error("Batch job failed: {}", e)
            print(f"Error: {e}")
            sys.exit(1)
        target = Path(args.output) if args.output else src.with_name(output_filename())
        target.write_bytes(document)
        print(json.dumps({"success": True, "filename": str(target)}))
        return

    if not normalize_domain(args.domain):
        print("Error: Domain is required.")
        sys.exit(1)

    bundle = await lookup_domain(args.domain, resolver)
    if args.pretty:
        print(json.dumps(bundle.to_dict(), indent=2, default=str))
    else:
        print(json.dumps(bundle.to_dict(), default=str))


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log.critical(f"Unhandled exception: {e}")
        sys.exit(1)
