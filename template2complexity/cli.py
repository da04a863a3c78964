from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import template2complexity
from template2complexity.analysis.config import ComplexityConfig
from template2complexity.analysis.report import ComplexityReport


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="template2complexity",
        description="Analyse the conversion complexity of a word-processing template.",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the template to analyse.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the full report as JSON instead of a summary.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with configuration overrides (thresholds, weights, caps).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log extraction and analysis details to stderr.",
    )
    return parser


def _load_config(path: Path | None) -> ComplexityConfig | None:
    if path is None:
        return None
    with open(path, encoding="utf-8") as f:
        overrides = json.load(f)
    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file must hold a JSON object: {path}")
    return ComplexityConfig.from_mapping(overrides)


def _format_summary(path: Path, report: ComplexityReport) -> str:
    lines = [
        f"{path}: {report.level.value} complexity (score {report.score})",
        f"format: {report.document_format.display_name}",
        f"needs human review: {'yes' if report.needs_review else 'no'}",
    ]
    for issue in report.issues:
        lines.append(f"[{issue.severity.value}] {issue.type}: {issue.description}")
    for error in report.parse_errors:
        lines.append(f"warning: {error}")
    for recommendation in report.recommendations:
        lines.append(f"- {recommendation}")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code

    if unknown:
        unknown_str = " ".join(unknown)
        print(
            f"template2complexity: warning: unsupported arguments: {unknown_str}",
            file=sys.stderr,
        )
        return 1

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    try:
        config = _load_config(args.config)
        report = template2complexity.analyze_file(args.path, config=config)
        if args.json:
            json.dump(report.to_dict(), sys.stdout)
        else:
            sys.stdout.write(_format_summary(args.path, report))
        sys.stdout.write("\n")
        return 0
    except Exception as exc:
        print(f"template2complexity: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
