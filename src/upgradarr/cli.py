from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import yaml
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from .config import SETTINGS_STORE_KEYS, AppConfig, Settings, apply_settings_mapping, build_app_config, load_config
from .errors import UpgradarrError
from .log_buffer import StructuredLogBuffer, install_log_buffer, remove_log_buffer
from .logging_utils import render_fields_block
from .parsers.release_title import clean_title, extract_size_mb, extract_year, parse_release
from .parsers.tv_title import parse_show_season
from .persistence.log_store import LogStore, log_db_path
from .persistence.release_store import ReleaseStore
from .pipeline import Pipeline, build_context
from .progress import ProgressTracker, RichProgressListener
from .quality_scorer import ScoringContext, codec_advice, compute_quality_score, is_allowed
from .resolver import PINNABLE_FIELDS
from .run_summary import render_summary_table
from .utils import load_yaml_file
from .validation import validate_config_data
from .version import __version__

LOGGER = logging.getLogger(__name__)
CONSOLE = Console()

DEFAULT_CONFIG_PATH = Path(os.getenv("CONFIG_PATH", "/config/upgradarr.yaml"))
LOG_MAX_ENTRIES = 50_000


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s\n%(message)s\n",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("httpx", "httpcore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_app_config(path: Path, *, required: bool = True) -> AppConfig:
    if not path.exists() and not required:
        return AppConfig(settings=Settings())
    return load_config(path)


def _open_store(config: AppConfig) -> ReleaseStore:
    return ReleaseStore(config.settings.database_path)


def run_pipeline(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)
    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.error("Failed to load config %s: %s", args.config, exc)
        return 1

    settings = config.settings
    store = _open_store(config)
    log_store = LogStore(log_db_path(settings.database_path))
    pruned = log_store.prune(max_age_days=settings.log_retention_days or None, max_entries=LOG_MAX_ENTRIES)
    if pruned:
        LOGGER.debug("Pruned %d old log entries", pruned)

    tracker = ProgressTracker()
    try:
        context = build_context(config, store, progress=tracker)
    except ValueError as exc:
        LOGGER.error("Stored settings are invalid: %s", exc)
        store.close()
        log_store.close()
        return 1

    buffer = StructuredLogBuffer(settings.log_buffer_size)
    handler = install_log_buffer(buffer, store=log_store, job_id=context.job_id)
    try:
        with Progress(console=CONSOLE, disable=not LOGGER.isEnabledFor(logging.INFO)) as progress:
            listener = RichProgressListener(progress)
            tracker.add_listener(listener)
            try:
                stats = Pipeline(context).run()
            finally:
                tracker.remove_listener(listener)
    finally:
        remove_log_buffer(handler)
        context.close()
        store.close()
        log_store.close()

    render_summary_table(stats, CONSOLE)
    return 1 if stats.error_count else 0


def run_parse(args: argparse.Namespace) -> int:
    parsed = parse_release(args.title)
    show = parse_show_season(args.title)
    CONSOLE.print(
        render_fields_block(
            args.title,
            {
                **parsed.to_dict(),
                "clean_title": clean_title(args.title),
                "year": extract_year(args.title),
                "size_mb": extract_size_mb(args.title),
                "show_name": show.show_name,
                "season": show.season_number,
            },
            pad_top=False,
        ),
        markup=False,
    )
    return 0


def run_score(args: argparse.Namespace) -> int:
    try:
        config = _load_app_config(args.config, required=False)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        CONSOLE.print(f"[red]Failed to load config:[/] {exc}")
        return 1
    quality = config.settings.quality
    parsed = parse_release(args.title)
    score = compute_quality_score(parsed, quality, ScoringContext(is_dubbed=args.dubbed))
    allowed = is_allowed(parsed, quality)

    table = Table(title=args.title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for label, value in (
        ("Resolution", f"{parsed.resolution} ({score.resolution_score:g})"),
        ("Source", f"{parsed.source_tag} ({score.source_score:g})"),
        ("Codec", f"{parsed.codec} ({score.codec_score:g}, {codec_advice(parsed, quality)})"),
        ("Audio", f"{parsed.audio} ({score.audio_score:g})"),
        ("Dubbed penalty", f"{score.dubbed_penalty:g}"),
        ("Language bonus", f"{score.language_bonus:g}"),
        ("Total", f"{score.total:g}"),
        ("Allowed", "[green]yes[/]" if allowed else "[red]no[/]"),
    ):
        table.add_row(label, value)
    CONSOLE.print(table)
    return 0


def run_pin(args: argparse.Namespace) -> int:
    config = _load_app_config(args.config)
    store = _open_store(config)
    try:
        if args.command == "pin":
            changed = store.pin_identifier(args.guid, args.field, args.value, tv=args.tv)
        else:
            changed = store.unpin_identifier(args.guid, args.field, tv=args.tv)
    except (ValueError, UpgradarrError) as exc:
        CONSOLE.print(f"[red]{exc}[/]")
        return 1
    finally:
        store.close()
    if not changed:
        CONSOLE.print(f"[yellow]No {'TV ' if args.tv else ''}release with guid '{args.guid}'[/]")
        return 1
    CONSOLE.print(f"[green]{'Pinned' if args.command == 'pin' else 'Unpinned'} {args.field} for {args.guid}[/]")
    return 0


def run_mark(args: argparse.Namespace) -> int:
    config = _load_app_config(args.config)
    store = _open_store(config)
    try:
        marker = store.mark_tv_status if args.tv else store.mark_status
        changed = marker(args.guid, args.status)
    except (ValueError, UpgradarrError) as exc:
        CONSOLE.print(f"[red]{exc}[/]")
        return 1
    finally:
        store.close()
    if not changed:
        CONSOLE.print(f"[yellow]No {'TV ' if args.tv else ''}release with guid '{args.guid}'[/]")
        return 1
    CONSOLE.print(f"[green]{args.guid} marked {args.status}[/]")
    return 0


def run_logs(args: argparse.Namespace) -> int:
    config = _load_app_config(args.config)
    log_store = LogStore(log_db_path(config.settings.database_path))
    try:
        entries = log_store.query(
            level=args.level, source=args.source, search=args.search, job_id=args.job_id, limit=args.limit
        )
    finally:
        log_store.close()

    if args.json:
        CONSOLE.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return 0
    if not entries:
        CONSOLE.print("[dim]No log entries matched[/]")
        return 0

    table = Table(title="Logs")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Level")
    table.add_column("Source", style="cyan")
    table.add_column("Message")
    for entry in entries:
        level_style = {"ERROR": "red", "CRITICAL": "red", "WARNING": "yellow"}.get(entry.level, "")
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{level_style}]{entry.level}[/]" if level_style else entry.level,
            entry.source,
            entry.message if not entry.release_title else f"{entry.message}\n[dim]{entry.release_title}[/]",
        )
    CONSOLE.print(table)
    return 0


def run_validate_config(args: argparse.Namespace) -> int:
    try:
        data = load_yaml_file(args.config)
    except (OSError, yaml.YAMLError) as exc:
        CONSOLE.print(f"[red]Failed to read {args.config}:[/] {exc}")
        return 1

    report = validate_config_data(data)
    if report.is_valid:
        try:
            build_app_config(data)
        except ValueError as exc:
            CONSOLE.print(f"[red]✗ {exc}[/]")
            return 1

    for label, issues, style in (("Validation Errors", report.errors, "red"), ("Warnings", report.warnings, "yellow")):
        if not issues:
            continue
        CONSOLE.print(f"[bold {style}]{label}[/]")
        for issue in issues:
            CONSOLE.print(f"  [{style}]{issue.path}[/]: {issue.message}", markup=True)
            if issue.fix_suggestion and not args.no_suggestions:
                CONSOLE.print(f"    [dim]→ {issue.fix_suggestion}[/]")

    if report.errors:
        return 1
    CONSOLE.print("[green]✓ Configuration passed validation[/]")
    return 0


def run_set_setting(args: argparse.Namespace) -> int:
    if args.key not in SETTINGS_STORE_KEYS:
        CONSOLE.print(f"[red]Unknown setting '{args.key}'; expected one of {', '.join(sorted(SETTINGS_STORE_KEYS))}[/]")
        return 1
    config = _load_app_config(args.config)
    store = _open_store(config)
    try:
        store.set_app_setting(args.key, args.value or None)
        apply_settings_mapping(config.settings, store.get_app_settings())
    except ValueError as exc:
        store.set_app_setting(args.key, None)
        CONSOLE.print(f"[red]{exc}[/]")
        return 1
    finally:
        store.close()
    CONSOLE.print(f"[green]{args.key} saved[/]")
    return 0


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to upgradarr YAML config (env: CONFIG_PATH)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="upgradarr", description="Reconcile release feeds against your library.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one full sync pass")
    _add_config_argument(run_parser)
    run_parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    run_parser.set_defaults(func=run_pipeline)

    parse_parser = subparsers.add_parser("parse", help="Show what a release title parses to")
    parse_parser.add_argument("title")
    parse_parser.set_defaults(func=run_parse)

    score_parser = subparsers.add_parser("score", help="Score a release title with the configured weights")
    _add_config_argument(score_parser)
    score_parser.add_argument("title")
    score_parser.add_argument("--dubbed", action="store_true", help="Apply the dubbed penalty")
    score_parser.set_defaults(func=run_score)

    for name, help_text in (("pin", "Pin an identifier on a release"), ("unpin", "Release an identifier pin")):
        pin_parser = subparsers.add_parser(name, help=help_text)
        _add_config_argument(pin_parser)
        pin_parser.add_argument("guid")
        pin_parser.add_argument("field", choices=PINNABLE_FIELDS)
        if name == "pin":
            pin_parser.add_argument("value")
        pin_parser.add_argument("--tv", action="store_true", help="Target a TV release")
        pin_parser.set_defaults(func=run_pin)

    mark_parser = subparsers.add_parser("mark", help="Set the status of a release (e.g. ADDED)")
    _add_config_argument(mark_parser)
    mark_parser.add_argument("guid")
    mark_parser.add_argument("status", type=str.upper)
    mark_parser.add_argument("--tv", action="store_true", help="Target a TV release")
    mark_parser.set_defaults(func=run_mark)

    logs_parser = subparsers.add_parser("logs", help="Query persisted log entries")
    _add_config_argument(logs_parser)
    logs_parser.add_argument("--level", help="Minimum level (DEBUG, INFO, WARNING, ERROR)")
    logs_parser.add_argument("--source", help="Component name, e.g. resolver")
    logs_parser.add_argument("--search", help="Text contained in the message")
    logs_parser.add_argument("--job-id", dest="job_id", help="Only entries from this run")
    logs_parser.add_argument("--limit", type=int, default=100)
    logs_parser.add_argument("--json", action="store_true", help="Print entries as JSON")
    logs_parser.set_defaults(func=run_logs)

    validate_parser = subparsers.add_parser("validate-config", help="Validate a configuration file")
    _add_config_argument(validate_parser)
    validate_parser.add_argument("--no-suggestions", action="store_true", help="Hide fix suggestions")
    validate_parser.set_defaults(func=run_validate_config)

    setting_parser = subparsers.add_parser("set-setting", help="Store a setting that overrides the config file")
    _add_config_argument(setting_parser)
    setting_parser.add_argument("key")
    setting_parser.add_argument("value", nargs="?", default="", help="Empty clears the stored value")
    setting_parser.set_defaults(func=run_set_setting)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args: Any = parser.parse_args(argv)
    try:
        return args.func(args)
    except (OSError, yaml.YAMLError) as exc:
        CONSOLE.print(f"[red]{exc}[/]")
        return 1
    except ValueError as exc:
        CONSOLE.print(f"[red]Invalid configuration:[/] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
