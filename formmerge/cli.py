"""CLI entrypoint for the grab-and-merge workflow.

Usage:
    python -m formmerge --config config.json list
    python -m formmerge --config config.json merge <FILE_ID> [<FILE_ID> ...]
    python -m formmerge --config config.json merge --all --output merged.pdf
    python -m formmerge --config config.json search --start 2025-10-01 --last smith
    python -m formmerge --config config.json search --form-id 100000000254
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("config.json")


def _setup_logging(
    *,
    verbose: bool,
    detailed_logging: bool,
    output_dir: Path,
    log_file: Path | None,
) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    root_level = logging.DEBUG if verbose else logging.INFO
    root_logger.setLevel(root_level)

    console_fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    detailed_fmt = (
        "%(asctime)s | %(levelname)-8s | %(name)s | "
        "%(threadName)s | %(filename)s:%(lineno)d | %(message)s"
    )
    formatter = logging.Formatter(
        detailed_fmt if detailed_logging else console_fmt,
        "%Y-%m-%d %H:%M:%S",
    )

    # stdout carries JSON results, so logs go to stderr.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(root_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    resolved_log_file = log_file
    if resolved_log_file is None and detailed_logging:
        resolved_log_file = output_dir / "formmerge.log"

    if resolved_log_file is not None:
        resolved_log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            resolved_log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(detailed_fmt, "%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="List, merge and archive completed PDF forms"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=(
            "JSON settings file (default: config.json when present); "
            "FORMMERGE_* env vars override it"
        ),
    )
    parser.add_argument(
        "--credentials",
        type=Path,
        default=Path("credentials.json"),
        help="Google OAuth2 credentials file (default: credentials.json)",
    )
    parser.add_argument(
        "--token",
        type=Path,
        default=None,
        help="Cached OAuth2 token (default: token.json next to --credentials)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory for merged PDFs and detailed logs (default: output/)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--detailed-logging",
        action="store_true",
        help="Enable detailed logging (thread, file/line, rotating log file)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help=(
            "Optional log file path "
            "(default: <output-dir>/formmerge.log in detailed mode)"
        ),
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List PDFs waiting to be merged")

    merge = commands.add_parser("merge", help="Merge PDFs and archive the originals")
    merge.add_argument("file_ids", nargs="*", help="Drive file IDs, in merge order")
    merge.add_argument(
        "--all",
        action="store_true",
        help="Merge every eligible PDF, oldest first",
    )
    merge.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the merged PDF (default: <output-dir>/<service name>)",
    )
    merge.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the staging progress bar",
    )

    search = commands.add_parser("search", help="Search generated forms to recreate")
    search.add_argument("--start", help="Earliest submission date (YYYY-MM-DD)")
    search.add_argument("--end", help="Latest submission date (YYYY-MM-DD)")
    search.add_argument("--first", help="First-name substring")
    search.add_argument("--last", help="Last-name substring")
    search.add_argument("--form-id", help="Exact 12-digit FormID")

    args = parser.parse_args(argv)
    if args.command == "merge" and not args.file_ids and not args.all:
        parser.error("merge needs file IDs or --all")
    if args.token is None:
        args.token = args.credentials.parent / "token.json"
    return args


def _config_path(explicit: Path | None) -> Path | None:
    """An explicit --config must exist; the default file is optional."""
    if explicit is not None:
        return explicit
    return DEFAULT_CONFIG if DEFAULT_CONFIG.exists() else None


def _emit(result: dict[str, Any]) -> None:
    print(json.dumps(result, indent=2, ensure_ascii=False, default=str))


def _write_merged(result: dict[str, Any], args: argparse.Namespace) -> Path:
    target = args.output or args.output_dir / (result.get("outputName") or "merged.pdf")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(base64.b64decode(result["base64"]))
    return target


def main(argv: list[str] | None = None) -> None:
    """Run one CLI command."""
    from .api import (
        get_merged_pdf_and_archive,
        list_new_forms,
        search_forms_for_recreate,
    )
    from .config import ConfigError, load_settings
    from .merge_client import MergeServiceClient
    from .sheets import open_sheet
    from .sources import DriveDocumentStore, authenticate, build_services

    args = parse_args(argv)
    _setup_logging(
        verbose=args.verbose,
        detailed_logging=args.detailed_logging,
        output_dir=args.output_dir,
        log_file=args.log_file,
    )

    try:
        settings = load_settings(_config_path(args.config))
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        sys.exit(2)

    log.info("Authenticating with Google...")
    creds = authenticate(args.credentials, args.token)
    drive_service, sheets_service = build_services(creds)
    store = DriveDocumentStore(drive_service)
    sheet = open_sheet(sheets_service, settings.source_sheet_id, settings.sheet_name)

    if args.command == "list":
        result = list_new_forms(store, settings)
        _emit(result)

    elif args.command == "search":
        query = {
            "start": args.start,
            "end": args.end,
            "first": args.first,
            "last": args.last,
            "formId": args.form_id,
        }
        result = search_forms_for_recreate(query, sheet, settings)
        _emit(result)

    else:
        file_ids = list(args.file_ids)
        if args.all:
            listing = list_new_forms(store, settings)
            if not listing["ok"]:
                _emit(listing)
                sys.exit(1)
            file_ids.extend(f["id"] for f in listing["files"] if f["id"] not in file_ids)
            log.info("Selected %s eligible PDF(s)", len(file_ids))

        with MergeServiceClient.from_settings(settings) as client:
            result = get_merged_pdf_and_archive(
                file_ids,
                store,
                sheet,
                client,
                settings,
                progress=not args.no_progress,
            )

        if result["ok"]:
            target = _write_merged(result, args)
            log.info("Merged PDF written to %s", target)
            summary = {k: v for k, v in result.items() if k != "base64"}
            summary["output"] = str(target)
            _emit(summary)
        else:
            _emit(result)

    if not result["ok"]:
        sys.exit(1)
