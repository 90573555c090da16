"""
Graph CLI tool for AppGraph.

This tool builds, validates and compares application declarations:
- synth: Validate a graph and print its declaration
- validate: Report every violation in a graph
- diff: Show differences between two emitted declarations

Usage:
    appgraph synth --manifest app.yaml > app.declaration.json
    appgraph validate --module infra.salad_app.app
    appgraph diff --old deployed.json --new app.declaration.json

Invariants:
    - Violations, destructive changes and unreadable inputs cause a
      non-zero exit code, never a traceback
    - Declarations go to stdout, diagnostics to stderr
    - Output is deterministic (sorted JSON)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from ..config import AppGraphConfig
from ..declaration import Declaration
from ..diff import DestructiveChangeError, check_destructive, diff_declarations
from ..errors import AppGraphError
from ..graph import ApplicationGraph
from ..manifest import load_manifest

logger = logging.getLogger(__name__)


class GraphCLI:
    """CLI tool for application graphs.

    Example:
        >>> cli = GraphCLI()
        >>> print(cli.synth(graph))
        >>> errors = cli.validate(graph)
    """

    def synth(
        self,
        graph: ApplicationGraph,
        output_format: str = "json",
        indent: Optional[int] = 2,
    ) -> str:
        """Validate and emit a graph.

        Raises:
            GraphValidationError: If the graph has violations
            GraphFrozenError: If the graph was already emitted
        """
        return graph.emit().render(output_format, indent=indent)

    def validate(self, graph: ApplicationGraph) -> List[str]:
        """Return every violation as a printable line."""
        return [f"[{v.code}] {v.message}" for v in graph.validate_all()]

    def diff(self, old: Declaration, new: Declaration) -> List[Dict[str, Any]]:
        """Compare two declarations.

        Returns:
            List of change dictionaries
        """
        return [change.to_dict() for change in diff_declarations(old, new)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appgraph", description="AppGraph declaration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    synth_parser = subparsers.add_parser("synth", help="Validate and emit a declaration")
    _add_source_arguments(synth_parser)
    synth_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    synth_parser.add_argument(
        "--format", choices=["json", "yaml"], help="Output format (default: from config)"
    )

    validate_parser = subparsers.add_parser("validate", help="Report every violation")
    _add_source_arguments(validate_parser)

    diff_parser = subparsers.add_parser("diff", help="Compare two declarations")
    diff_parser.add_argument("--old", required=True, help="Path to deployed declaration (JSON or YAML)")
    diff_parser.add_argument("--new", required=True, help="Path to new declaration (JSON or YAML)")
    diff_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--manifest", "-m", help="YAML or JSON manifest file")
    source.add_argument("--module", help="Python module exposing build_graph() or graph")


def run(argv: Optional[List[str]] = None, config: Optional[AppGraphConfig] = None) -> int:
    """Run the CLI and return the exit code."""
    config = config or AppGraphConfig()
    args = build_parser().parse_args(argv)
    cli = GraphCLI()

    if args.command == "diff":
        return _run_diff(cli, args)

    try:
        graph = _load_graph(args.manifest, args.module, config)
    except (AppGraphError, OSError, ValueError, ImportError) as e:
        print(f"Failed to load graph: {_describe(e)}", file=sys.stderr)
        return 1

    if args.command == "validate":
        errors = cli.validate(graph)
        if not errors:
            print(f"Graph '{graph.name}' is valid")
            return 0
        print(f"Graph validation failed with {len(errors)} violation(s):")
        for error in errors:
            print(f"  - {error}")
        return 1

    try:
        output = cli.synth(
            graph,
            output_format=args.format or config.output.format,
            indent=config.output.indent,
        )
    except AppGraphError as e:
        print(e.message, file=sys.stderr)
        return 1

    if args.output:
        try:
            with open(args.output, "w") as f:
                f.write(output)
        except OSError as e:
            print(f"Failed to write declaration: {e}", file=sys.stderr)
            return 1
        print(f"Declaration written to {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


def _run_diff(cli: GraphCLI, args: argparse.Namespace) -> int:
    """Print the changes between two declarations; exit 1 on destructive ones."""
    try:
        old = Declaration.load(args.old)
        new = Declaration.load(args.new)
    except (OSError, ValueError) as e:
        print(f"Failed to read declaration: {e}", file=sys.stderr)
        return 1

    changes = cli.diff(old, new)
    if args.format == "json":
        print(json.dumps(changes, indent=2))
    elif not changes:
        print("No changes detected")
    else:
        print(f"Found {len(changes)} change(s):")
        for change in changes:
            status = "DESTRUCTIVE" if change["is_destructive"] else "OK"
            print(f"  [{status}] {change['kind']}: {change['path']}")
            print(f"          {change['message']}")

    try:
        check_destructive(old, new)
    except DestructiveChangeError as e:
        print(e.message, file=sys.stderr)
        return 1
    return 0


def _describe(error: Exception) -> str:
    if isinstance(error, AppGraphError):
        return error.message
    return str(error)


def _load_graph(
    manifest_path: Optional[str],
    module_path: Optional[str],
    config: AppGraphConfig,
) -> ApplicationGraph:
    """Load a graph from a manifest file or a Python module.

    Args:
        manifest_path: Path to a YAML/JSON manifest
        module_path: Module exposing build_graph(config) or a `graph` attribute

    Returns:
        ApplicationGraph (not yet validated)
    """
    if manifest_path:
        return load_manifest(manifest_path)

    module = importlib.import_module(module_path)
    if hasattr(module, "build_graph"):
        return module.build_graph(config)
    if hasattr(module, "graph"):
        return module.graph
    raise ValueError(f"Module {module_path} has no 'build_graph()' or 'graph'")


def main() -> None:
    """CLI entry point."""
    from ..main import main as entry

    sys.exit(entry())


if __name__ == "__main__":
    main()
