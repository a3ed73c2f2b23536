#!/usr/bin/env python3
"""Rewrite the source literal behind a runtime-generated class value.

Runs the dynamic resolver's pass cascade over a project tree. When several
files hold the exact literal, ``--select`` answers the disambiguation
prompt; without it the prompt is printed and nothing is written.

Usage:
    python3 scripts/resolve_dynamic_edit.py --root site \\
      --before "btn btn-primary" --after "btn btn-secondary" \\
      --active site/index.html --select only_active
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import orjson

from classlink.ambiguity import parse_selection
from classlink.config import EngineConfig
from classlink.detect import local_script_sources
from classlink.resolver import DynamicEdit, DynamicResolver, EditHint
from classlink.workspace import read_source

log = logging.getLogger("resolve_dynamic_edit")


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find and rewrite the string literal that produced a class value."
    )
    parser.add_argument("--root", required=True, type=Path, help="Project root to search")
    parser.add_argument("--before", required=True, help="Class value as rendered")
    parser.add_argument("--after", required=True, help="Edited class value")
    parser.add_argument(
        "--active", type=Path, default=None, help="Document currently previewed",
    )
    parser.add_argument(
        "--nearby-text", default="", help="Rendered text of the edited element",
    )
    parser.add_argument(
        "--select",
        default=None,
        help="Answer for an ambiguity prompt: only_active | everywhere | <file path>",
    )
    parser.add_argument("--config", type=Path, default=None, help="Optional classlink.json")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def _run(args: argparse.Namespace) -> dict[str, object]:
    config = EngineConfig.from_json(args.config) if args.config else EngineConfig()
    priority: list[Path] = []
    if args.active is not None:
        try:
            priority = local_script_sources(read_source(args.active), args.active, args.root)
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("cannot read active document %s: %s", args.active, exc)
    resolver = DynamicResolver(args.root, config=config)
    hint = EditHint(nearby_text=args.nearby_text) if args.nearby_text else None
    outcome = await resolver.resolve(
        DynamicEdit(args.before, args.after, hint),
        active=args.active,
        selection=parse_selection(args.select),
        priority_files=priority,
    )
    return outcome.to_dict()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not args.root.is_dir():
        log.error("root is not a directory: %s", args.root)
        return 1

    result = asyncio.run(_run(args))
    dump_json(result)
    if result["status"] == "ambiguous":
        log.info("Several files match; rerun with --select to choose")
    elif result["status"] == "applied":
        log.info("Changed %s file(s)", result["changedFileCount"])
    else:
        log.info("No changes (%s)", result["status"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
