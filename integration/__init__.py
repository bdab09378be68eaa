"""Integration package.

IMPORTANT:
Run CLI entrypoints via module execution from the repository root, e.g.:
  python3 -m tools.track_traders --config config/tracker.yaml

This avoids Python import-path ambiguity when running files by relative path.
"""
