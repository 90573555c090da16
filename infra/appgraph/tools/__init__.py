"""
CLI tools for AppGraph.

This module provides command-line tools for:
- synth: Emit a declaration from a manifest or module
- validate: Report graph violations
- diff: Compare deployed and new declarations

Invariants:
    - Tools work offline (nothing is provisioned)
    - Failures exit non-zero
"""

from .graph_cli import GraphCLI, run

__all__ = ["GraphCLI", "run"]
