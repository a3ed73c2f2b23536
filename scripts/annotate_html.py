#!/usr/bin/env python3
"""Annotate an HTML file and print its class-value mapping table.

Outputs structured JSON to stdout, human messages to stderr.

Usage:
    python3 scripts/annotate_html.py site/index.html \\
      --renderable-out /tmp/index.annotated.html --config classlink.json
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import orjson

from classlink.annotator import annotate_html
from classlink.config import EngineConfig
from classlink.detect import has_tailwind
from classlink.workspace import read_source, write_source


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Annotate an HTML file with class-value source ranges."
    )
    parser.add_argument("document", type=Path, help="HTML file to annotate")
    parser.add_argument(
        "--config", type=Path, default=None, help="Optional classlink.json config",
    )
    parser.add_argument(
        "--strategy",
        choices=["auto", "structural", "tag_scan"],
        default="auto",
        help="Annotation strategy (default: auto = structural with tag-scan fallback)",
    )
    parser.add_argument(
        "--renderable-out",
        type=Path,
        default=None,
        help="Write the marker-annotated renderable HTML here",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Check every range reads back its recorded value (exit 1 on mismatch)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.document.is_file():
        print(f"Error: document not found: {args.document}", file=sys.stderr)
        return 1
    config = EngineConfig.from_json(args.config) if args.config else EngineConfig()
    text = read_source(args.document)
    annotated = annotate_html(
        text,
        marker_attribute=config.marker_attribute,
        strategy=None if args.strategy == "auto" else args.strategy,
    )

    mismatched = [
        d.uid for d in annotated.table if d.range.read(text) != d.last_known_value
    ]
    if args.renderable_out is not None:
        args.renderable_out.parent.mkdir(parents=True, exist_ok=True)
        write_source(args.renderable_out, annotated.renderable_html)
        print(f"Renderable HTML written to {args.renderable_out}", file=sys.stderr)

    dump_json({
        "document": str(args.document),
        "strategy": annotated.strategy,
        "has_tailwind": has_tailwind(text),
        "mismatched_uids": mismatched,
        **annotated.table.to_dict(),
    })
    print(
        f"{len(annotated.table)} class-bearing elements mapped ({annotated.strategy})",
        file=sys.stderr,
    )
    if args.verify and mismatched:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
