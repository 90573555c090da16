"""
AppGraph Test Suite.

This package contains:
- unit/: Unit tests for the model, grants, routes, graph, diff and config
- integration/: Manifest loading, the CLI and the Salad App declaration
"""
