"""Main CLI entry point for the xml-scaffold command-line tool.

Sub-commands:
    parse   Parse files and report node counts, anomalies and diagnostics
    tokens  Dump the flat token stream of one input
    render  Render one input to HTML
    check   Exit non-zero when any input contains malformed nodes
"""

import argparse
import json
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from xml_scaffold import __version__
from xml_scaffold.api import EncodingDetector, XMLScaffoldParser, parse_file
from xml_scaffold.shared.config import ConfigError, ParserConfig
from xml_scaffold.shared.logging import get_logger

MARKUP_SUFFIXES = {".xml", ".xhtml", ".svg", ".html", ".htm"}

PRESETS = {
    "default": ParserConfig.default,
    "minimal": ParserConfig.minimal,
    "shallow": ParserConfig.shallow,
}


class CLIConfig:
    """Configuration management for CLI operations."""

    def __init__(self):
        self.parser_config = ParserConfig.default()
        self.max_workers = None  # Use system default
        self.output_format = "json"

    @classmethod
    def from_file(cls, config_path: Path) -> "CLIConfig":
        """Load CLI configuration from a JSON file.

        The file may name a ``preset`` and/or hold a full ``parser`` section
        as produced by ``ParserConfig.to_dict()``.
        """
        config = cls()
        with config_path.open() as f:
            data = json.load(f)

        if "preset" in data:
            preset = PRESETS.get(data["preset"])
            if preset is None:
                raise ConfigError(f"Unknown preset: {data['preset']}")
            config.parser_config = preset()
        if "parser" in data:
            config.parser_config = ParserConfig.from_dict(data["parser"])

        config.max_workers = data.get("max_workers", config.max_workers)
        config.output_format = data.get("output_format", config.output_format)
        return config


def _process_path(file_path: Path, parser_config: ParserConfig, include_tree: bool) -> Dict[str, Any]:
    """Parse one file into a JSON-friendly summary; runs in worker processes."""
    result = parse_file(file_path, config=parser_config)
    summary: Dict[str, Any] = {
        "file": str(file_path),
        "success": result.success,
        "well_formed": result.is_well_formed,
        "node_count": result.node_count,
        "malformed_count": result.malformed_count,
        "max_depth": result.performance.max_depth_reached,
        "processing_time_ms": result.performance.processing_time_ms,
        "diagnostics": [diag.to_dict() for diag in result.diagnostics],
    }
    if include_tree:
        summary["tree"] = result.document.to_dict()
    return summary


class XMLProcessor:
    """Core file processing logic for CLI operations."""

    def __init__(self, config: CLIConfig):
        self.config = config
        self.parser = XMLScaffoldParser(config=config.parser_config)
        self.logger = get_logger(__name__, None, "cli_processor")

    def process_single_file(self, file_path: Path, include_tree: bool = False) -> Dict[str, Any]:
        """Process a single file and return its summary."""
        return _process_path(file_path, self.config.parser_config, include_tree)

    def find_markup_files(self, path: Path, recursive: bool = True) -> Iterator[Path]:
        """Yield ``path`` itself, or the markup files below a directory."""
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            for candidate in sorted(path.glob(pattern)):
                if candidate.is_file() and candidate.suffix.lower() in MARKUP_SUFFIXES:
                    yield candidate
        else:
            # Missing files are passed through so they show up as failures
            yield path

    def batch_process(
        self,
        paths: List[Path],
        recursive: bool = True,
        include_tree: bool = False
    ) -> List[Dict[str, Any]]:
        """Process multiple files, in parallel when more than one worker is allowed."""
        all_files: List[Path] = []
        for path in paths:
            all_files.extend(self.find_markup_files(path, recursive))

        if not all_files:
            return []

        self.logger.info(
            "Processing files",
            extra={"file_count": len(all_files), "max_workers": self.config.max_workers}
        )

        # Full trees stay in this process; deep ones are too nested to pickle
        if len(all_files) == 1 or self.config.max_workers == 1 or include_tree:
            return [self.process_single_file(path, include_tree) for path in all_files]

        results = []
        with ProcessPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = [
                executor.submit(_process_path, path, self.config.parser_config, include_tree)
                for path in all_files
            ]
            for future in as_completed(futures):
                results.append(future.result())
        results.sort(key=lambda item: item["file"])
        return results


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Configuration file path (JSON)"
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Parser configuration preset"
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        help="Nesting depth ceiling for open tags"
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="xml-scaffold",
        description="Lenient parser that scaffolds any XML-like markup into a node tree"
    )

    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Parse command
    parse_parser = subparsers.add_parser("parse", help="Parse markup files")
    parse_parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Files or directories to parse"
    )
    parse_parser.add_argument(
        "--recursive", "-r",
        action="store_true",
        help="Recursively process directories"
    )
    parse_parser.add_argument(
        "--format", "-f",
        choices=["json", "csv", "text"],
        default="json",
        help="Output format (default: json)"
    )
    parse_parser.add_argument(
        "--tree",
        action="store_true",
        help="Include the full node tree in JSON output"
    )
    parse_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: stdout)"
    )
    parse_parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of parallel workers"
    )
    _add_config_arguments(parse_parser)

    # Tokens command
    tokens_parser = subparsers.add_parser("tokens", help="Dump the flat token stream")
    tokens_parser.add_argument("path", help="Input file, or - for stdin")
    tokens_parser.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="text",
        help="Output format (default: text)"
    )
    _add_config_arguments(tokens_parser)

    # Render command
    render_parser = subparsers.add_parser("render", help="Render markup to HTML")
    render_parser.add_argument("path", help="Input file, or - for stdin")
    render_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: stdout)"
    )
    _add_config_arguments(render_parser)

    # Check command
    check_parser = subparsers.add_parser(
        "check", help="Fail when any input contains malformed nodes"
    )
    check_parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Files or directories to check"
    )
    check_parser.add_argument(
        "--recursive", "-r",
        action="store_true",
        help="Recursively process directories"
    )
    check_parser.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="text",
        help="Output format"
    )
    _add_config_arguments(check_parser)

    return parser


def build_cli_config(args: argparse.Namespace) -> CLIConfig:
    """Combine config file, preset and flag overrides into a CLIConfig."""
    config = CLIConfig()
    if args.config:
        config = CLIConfig.from_file(args.config)
    if args.preset:
        config.parser_config = PRESETS[args.preset]()
    if args.max_depth is not None:
        config.parser_config = config.parser_config.override(tree__max_depth=args.max_depth)
    if getattr(args, "workers", None):
        config.max_workers = args.workers
    return config


def read_input(path: str) -> str:
    """Read markup from a file path, or from stdin for ``-``."""
    if path == "-":
        return sys.stdin.read()
    text, _ = EncodingDetector().decode(Path(path).read_bytes())
    return text


def dump_json(value: Any, indent: int = 2) -> str:
    """Serialize ``value`` the way ``json.dumps(value, indent=indent)`` does.

    Node trees nest as deep as the depth ceiling allows, which is deeper than
    the recursive encoders in :mod:`json` can follow, so containers are
    expanded from an explicit stack and only scalars go through ``json``.
    """
    parts: List[str] = []
    # Items are literal text (str) or (value, level) pairs still to encode
    stack: List[Any] = [(value, 0)]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
            continue

        current, level = item
        if isinstance(current, dict) and current:
            entries = [(json.dumps(str(key)) + ": ", child) for key, child in current.items()]
            opener, closer = "{", "}"
        elif isinstance(current, (list, tuple)) and current:
            entries = [("", child) for child in current]
            opener, closer = "[", "]"
        else:
            parts.append(json.dumps(current))
            continue

        pad = "\n" + " " * (indent * (level + 1))
        work: List[Any] = [opener]
        for position, (prefix, child) in enumerate(entries):
            work.append(("," if position else "") + pad + prefix)
            work.append((child, level + 1))
        work.append("\n" + " " * (indent * level) + closer)
        stack.extend(reversed(work))
    return "".join(parts)


def format_results(results: List[Dict[str, Any]], format_type: str) -> str:
    """Format processing results for output."""
    if format_type == "csv":
        if not results:
            return ""

        lines = ["file,success,well_formed,nodes,malformed,max_depth,time_ms"]
        for result in results:
            lines.append(
                f"{result['file']},{result['success']},{result.get('well_formed', False)},"
                f"{result.get('node_count', 0)},{result.get('malformed_count', 0)},"
                f"{result.get('max_depth', 0)},{result.get('processing_time_ms', 0):.1f}"
            )
        return "\n".join(lines)

    if format_type == "text":
        if not results:
            return "No results to display."

        successful = sum(1 for r in results if r.get("success", False))
        lines = [f"Processed {len(results)} files, {successful} successful", "-" * 60]

        for result in results:
            if not result.get("success", False):
                status = "ERROR"
            elif result.get("malformed_count", 0):
                status = "MALFORMED"
            else:
                status = "OK"
            lines.append(f"[{status}] {result['file']}")
            lines.append(
                f"   Nodes: {result.get('node_count', 0)}, "
                f"Malformed: {result.get('malformed_count', 0)}, "
                f"Depth: {result.get('max_depth', 0)}, "
                f"Time: {result.get('processing_time_ms', 0):.1f}ms"
            )

            notable = [
                d for d in result.get("diagnostics", [])
                if d.get("severity") in ("WARNING", "ERROR", "CRITICAL")
            ]
            for diag in notable[:3]:
                position = diag.get("position")
                where = f" at {position['line']}:{position['column']}" if position else ""
                lines.append(f"   {diag['severity'].title()}: {diag['message']}{where}")
            if len(notable) > 3:
                lines.append(f"   ... and {len(notable) - 3} more")
            lines.append("")

        return "\n".join(lines)

    return dump_json(results)


def _write_output(text: str, output: Optional[Path]) -> int:
    if output is None:
        print(text)
        return 0
    try:
        output.write_text(text)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1
    print(f"Results written to {output}", file=sys.stderr)
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    """Handle parse command."""
    config = build_cli_config(args)
    processor = XMLProcessor(config)
    results = processor.batch_process(args.paths, args.recursive, args.tree)

    status = _write_output(format_results(results, args.format), args.output)
    if status or not results:
        return 1
    return 0 if all(r.get("success", False) for r in results) else 1


def cmd_tokens(args: argparse.Namespace) -> int:
    """Handle tokens command."""
    config = build_cli_config(args)
    try:
        source = read_input(args.path)
    except OSError as e:
        print(f"Cannot read {args.path}: {e}", file=sys.stderr)
        return 1

    result = XMLProcessor(config).parser.tokenize(source)
    if args.format == "json":
        print(json.dumps([token.to_dict() for token in result.tokens], indent=2))
        return 0

    for token in result.tokens:
        flag = " [malformed]" if token.malformed else ""
        print(f"{token.start:>6}-{token.end:<6} {token.role.value:<22} {token.raw!r}{flag}")
    print(
        f"{result.token_count} tokens, {result.malformed_count} malformed",
        file=sys.stderr
    )
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Handle render command."""
    config = build_cli_config(args)
    try:
        source = read_input(args.path)
    except OSError as e:
        print(f"Cannot read {args.path}: {e}", file=sys.stderr)
        return 1

    html = XMLProcessor(config).parser.render(source)
    return _write_output(html, args.output)


def cmd_check(args: argparse.Namespace) -> int:
    """Handle check command."""
    config = build_cli_config(args)
    processor = XMLProcessor(config)
    results = processor.batch_process(args.paths, args.recursive)

    checks = [
        {
            "file": result["file"],
            "ok": result["success"] and result["malformed_count"] == 0,
            "malformed_count": result["malformed_count"],
            "problems": [
                d for d in result["diagnostics"]
                if d["severity"] in ("WARNING", "ERROR", "CRITICAL")
            ],
        }
        for result in results
    ]

    if args.format == "json":
        print(json.dumps(checks, indent=2))
    else:
        ok_count = sum(1 for check in checks if check["ok"])
        print(f"Checked {len(checks)} files, {ok_count} without anomalies")
        print("-" * 50)
        for check in checks:
            print(f"[{'OK' if check['ok'] else 'FAIL'}] {check['file']}")
            for problem in check["problems"][:3]:
                print(f"   {problem['message']}")

    if not checks:
        return 1
    return 0 if all(check["ok"] for check in checks) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Set up logging verbosity
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    elif args.quiet:
        logging.basicConfig(level=logging.ERROR)

    handlers = {
        "parse": cmd_parse,
        "tokens": cmd_tokens,
        "render": cmd_render,
        "check": cmd_check,
    }

    try:
        return handlers[args.command](args)
    except (ConfigError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
