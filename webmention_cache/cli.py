from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from typing import Any, Sequence

from .config import load_options
from .errors import ConfigError, StorageError
from .mention import Mention
from .pipeline import MentionPipeline
from .run_log import RunLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webmention_cache")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser(
        "sync",
        help="Fetch new mentions into the local cache.",
    )
    sync.add_argument("--config", required=True, help="Path to YAML options file.")
    sync.add_argument(
        "--refresh",
        action="store_true",
        help="Fetch even if the cache is still fresh.",
    )
    sync.add_argument("--log", help="Append JSONL logs here instead of stderr.")
    sync.set_defaults(_handler=_cmd_sync)

    show = subparsers.add_parser(
        "show",
        help="Print the rendered mentions of one page as JSON.",
    )
    show.add_argument("--config", required=True, help="Path to YAML options file.")
    show.add_argument("--url", required=True, help="Page URL, absolute or site-relative.")
    show.add_argument(
        "--type",
        dest="types",
        action="append",
        default=[],
        help="Only include this mention type (repeatable).",
    )
    show.add_argument("--log", help="Append JSONL logs here instead of stderr.")
    show.set_defaults(_handler=_cmd_show)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _open_logger(args: argparse.Namespace) -> RunLogger:
    path = getattr(args, "log", None)
    if path:
        return RunLogger.open(path)
    return RunLogger.to_stderr()


def _mention_json(mention: Mention) -> dict[str, Any]:
    data = asdict(mention)
    data.pop("raw", None)
    return data


def _cmd_sync(args: argparse.Namespace) -> int:
    with _open_logger(args) as log:
        overrides = {"refresh": True} if args.refresh else None
        try:
            options = load_options(args.config, overrides)
            log.set_domain(options.domain)

            pipeline = MentionPipeline(options, logger=log)
            result = pipeline.sync()
            groups = pipeline.groups()
        except Exception as e:
            log.exception("sync_command_failed", exc=e)
            raise

    print(f"total={len(result.mentions)}")
    print(f"new={result.new_count}")
    print(f"targets={len(groups.by_url)}")
    print(f"failures={len(result.failures)}")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    with _open_logger(args) as log:
        try:
            options = load_options(args.config)
            log.set_domain(options.domain)

            pipeline = MentionPipeline(options, logger=log)
            mentions = pipeline.get_webmentions(args.url, args.types or None)
        except Exception as e:
            log.exception("show_command_failed", exc=e)
            raise

    print(json.dumps([_mention_json(m) for m in mentions], indent=2, ensure_ascii=False))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except StorageError as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
