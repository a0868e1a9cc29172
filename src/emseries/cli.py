"""emseries CLI entry point.

Usage: emseries [-v] {stats,dump,compact} PATH ...
"""
import argparse
import json
import logging
import os
import sys
from datetime import datetime

from emseries.criteria import TagMode, all_of, end_at, everything, has_tags, start_at
from emseries.domain import SeriesError, StoredRecord, ensure_aware, format_timestamp
from emseries.store import Series


def _timestamp_arg(text: str) -> datetime:
    try:
        return ensure_aware(datetime.fromisoformat(text))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO 8601 timestamp: {text!r}") from exc


def _add_stats_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("stats", help="Summarize a series file.")
    p.add_argument("path", help="Path to the series log.")


def _add_dump_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser(
        "dump",
        help="Print matching records as JSON lines, oldest first.",
    )
    p.add_argument("path", help="Path to the series log.")
    p.add_argument(
        "--tag", action="append", default=[], dest="tags",
        help="Only records carrying this tag (repeatable).",
    )
    p.add_argument(
        "--any", action="store_true",
        help="Match records with ANY of the --tag values instead of all.",
    )
    p.add_argument(
        "--since", type=_timestamp_arg,
        help="Inclusive lower bound (ISO 8601; naive means UTC).",
    )
    p.add_argument(
        "--until", type=_timestamp_arg,
        help="Inclusive upper bound (ISO 8601; naive means UTC).",
    )


def _add_compact_parser(subparsers: argparse._SubParsersAction) -> None:
    p = subparsers.add_parser("compact", help="Rewrite the log without tombstones.")
    p.add_argument("path", help="Path to the series log.")


def _open_existing(path: str) -> Series:
    if not os.path.exists(path):
        raise SeriesError(f"no series at {path}")
    return Series.open(path)


def _record_json(record: StoredRecord) -> str:
    return json.dumps({
        "sequence_id": record.sequence_id,
        "timestamp": format_timestamp(record.timestamp),
        "tags": sorted(record.tags),
        "values": list(record.values),
    }, ensure_ascii=False)


def _run_stats(args: argparse.Namespace) -> None:
    with _open_existing(args.path) as series:
        records = series.all_records()
        print(f"path:             {series.path}")
        print(f"records:          {len(records)}")
        print(f"next sequence id: {series.next_sequence_id}")
        if records:
            print(f"first:            {format_timestamp(records[0].timestamp)}")
            print(f"last:             {format_timestamp(records[-1].timestamp)}")


def _run_dump(args: argparse.Namespace) -> None:
    parts = []
    if args.since is not None:
        parts.append(start_at(args.since, inclusive=True))
    if args.until is not None:
        parts.append(end_at(args.until, inclusive=True))
    if args.tags:
        parts.append(has_tags(args.tags, TagMode.ANY if args.any else TagMode.ALL))
    criteria = all_of(*parts) if parts else everything()

    with _open_existing(args.path) as series:
        for record in series.search(criteria):
            print(_record_json(record))


def _run_compact(args: argparse.Namespace) -> None:
    with _open_existing(args.path) as series:
        written = series.compact()
    print(f"compacted {args.path}: {written} units")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="emseries",
        description="Inspect and maintain emseries time-series files.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log debug output to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command")

    _add_stats_parser(subparsers)
    _add_dump_parser(subparsers)
    _add_compact_parser(subparsers)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "stats": _run_stats,
        "dump": _run_dump,
        "compact": _run_compact,
    }
    try:
        commands[args.command](args)
    except SeriesError as exc:
        print(f"emseries: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
