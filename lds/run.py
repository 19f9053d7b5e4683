"""
Lawyer Directory Scraper - CLI Runner

Usage:
  python -m lds.run \
    --practice-area "personal injury" --location texas \
    --max-lawyers 100 --out ./out

  python -m lds.run --search-url https://www.justia.com/lawyers/family-law/ohio \
    --config config/example.yaml --fetch-full-profiles --out ./out

Dry run (validate only):
  python -m lds.run --practice-area "family law" --location ohio --out ./out --dry-run

Exit codes:
  0 - success
  1 - config error (file missing or invalid YAML)
  2 - input error (no search URL and no practice area/location pair)
  3 - processing error (runtime failures)
"""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from lawdir.config import AppConfig, ConfigError, InvalidInputError, apply_overrides, load_config
from lawdir.ops_logger import OpsLogger
from lawdir.pipeline.export import RecordExporter
from lawdir.pipeline.ingest import IngestPipeline


def ensure_out_dir(out_dir: Path) -> None:
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        # sanity check: can we write here?
        test_file = out_dir / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError as e:
        print(f"Output error: cannot write to {out_dir}: {e}", file=sys.stderr)
        sys.exit(3)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lds.run", description="Lawyer directory scraper")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file (optional)")
    parser.add_argument("--search-url", default=None, help="Directory listing URL to start from")
    parser.add_argument("--practice-area", default=None, help="Practice area, e.g. 'personal injury'")
    parser.add_argument("--location", default=None, help="Location, e.g. 'texas' or 'austin tx'")
    parser.add_argument("--max-lawyers", type=int, default=None, help="Record budget (0 = unlimited, default 50)")
    parser.add_argument("--max-pages", type=int, default=None, help="Page budget (0 = unlimited, default 5)")
    parser.add_argument("--fetch-full-profiles", action="store_true", default=None,
                        help="Visit each profile page to add biography, education and admissions")
    parser.add_argument("--debug", action="store_true", default=None,
                        help="Store a diagnostic snapshot for pages that yield no records")
    parser.add_argument("--out", "-o", required=True, help="Output directory")
    parser.add_argument("--db", choices=["sqlite", "none"], default="none", help="DB integration: sqlite or none (default: none)")
    parser.add_argument("--db-path", default=None, help="Path to SQLite DB file (default: <out>/lawyers.sqlite)")
    parser.add_argument("--concurrency", type=int, default=None, help="Parallel profile fetches (default 4)")
    parser.add_argument("--no-robots", action="store_true", help="Do not consult robots.txt")
    parser.add_argument("--no-headless", action="store_true", help="Disable Playwright escalation (static-only)")
    parser.add_argument("--ops-log", default=None, help="Path to ops JSONL log file (default: <out>/ops.log)")
    parser.add_argument("--ops-stdout", action="store_true", help="Also mirror ops JSON to stdout")
    parser.add_argument("--dry-run", action="store_true", help="Validate inputs/config and exit")
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    return apply_overrides(
        cfg,
        input_overrides={
            "search_url": args.search_url,
            "practice_area": args.practice_area,
            "location": args.location,
            "max_lawyers": args.max_lawyers,
            "max_pages": args.max_pages,
            "fetch_full_profiles": args.fetch_full_profiles,
            "debug": args.debug,
        },
        ops_overrides={
            "enrichment_concurrency": args.concurrency,
            "respect_robots": False if args.no_robots else None,
            "headless": False if args.no_headless else None,
            "ops_json": True if (args.ops_log or args.ops_stdout) else None,
        },
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    out_dir = Path(args.out)

    try:
        cfg = resolve_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    # Input validation happens before any network traffic
    try:
        start_url = cfg.input.resolve_search_url()
    except InvalidInputError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2

    ensure_out_dir(out_dir)

    if args.dry_run:
        print("✅ Dry-run validation passed")
        print(f" - Start URL: {start_url}")
        print(f" - Config: {args.config or '(defaults)'}")
        print(f" - Output dir: {out_dir}")
        print(f" - Budgets: maxLawyers={cfg.input.max_lawyers}, maxPages={cfg.input.max_pages}")
        return 0

    exporter = RecordExporter(output_dir=out_dir)
    ops_log_path = Path(args.ops_log) if args.ops_log else (out_dir / "ops.log")
    ops_logger = OpsLogger(ops_log_path, also_stdout=bool(args.ops_stdout))

    pipeline = IngestPipeline.from_config(cfg, sink=exporter, ops_logger=ops_logger)
    print(f"Start URL: {start_url}")
    print(f"Budgets: maxLawyers={cfg.input.max_lawyers or 'unlimited'}, maxPages={cfg.input.max_pages or 'unlimited'}, "
          f"full profiles={'on' if cfg.input.fetch_full_profiles else 'off'}, headless={'on' if cfg.ops.headless else 'off'}")

    proc_start = time.perf_counter()
    try:
        report = pipeline.run(start_url)
    except Exception as e:
        print(f"Processing error: {e}", file=sys.stderr)
        return 3
    finally:
        pipeline.close()

    stats = report.statistics
    if exporter.rows:
        try:
            csv_path = exporter.to_csv()
            json_path = exporter.to_json()
            print(f"💾 CSV: {csv_path}")
            print(f"💾 JSON: {json_path}")
        except (OSError, ValueError) as e:
            print(f"Export error: {e}", file=sys.stderr)
            return 3
    else:
        print("No lawyers extracted from any page.", file=sys.stderr)

    if args.db == "sqlite" and exporter.rows:
        db_path = args.db_path or str(out_dir / "lawyers.sqlite")
        try:
            from lawdir.db.sqlite_exporter import export_records_to_sqlite
            from lawdir.schemas import LawyerRecord
            records = [LawyerRecord.model_validate(row) for row in exporter.rows]
            written = export_records_to_sqlite(db_path, records)
            print(f"💽 SQLite: wrote {written} rows to {db_path}")
        except Exception as e:
            print(f"SQLite export error: {e}", file=sys.stderr)
            return 3

    print("🏁 Done.")
    print(f"   Processed pages: {stats.pages_processed}")
    print(f"   Total lawyers: {stats.total_records_stored}")
    print(f"   Final mode: {stats.final_mode.value}, final strategy: {stats.final_strategy or 'none'}")
    print(f"   Stop reason: {report.stop_reason}")
    print(f"   Wall time: {time.perf_counter() - proc_start:.1f}s")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
