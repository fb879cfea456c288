#!/usr/bin/env python3
"""
Import Cryptograms from YAML
============================

Reads a YAML list of puzzles and adds them to the configured puzzle store
(CRYPTICS_STORE), or prints a share link for each one instead.

YAML format:
    - puzzle: "Stop working dog, I'm in charge (4)"
      solution: "boss"
      explanation: "..."          # optional
      source: OFFICIAL            # optional, default USER_SUBMITTED
      difficulty: 2               # optional, default 3

Usage:
    python3 import_cryptograms.py --file puzzles.yaml              # Official archive
    python3 import_cryptograms.py --file puzzles.yaml --user       # User puzzles
    python3 import_cryptograms.py --file puzzles.yaml --dry-run    # Validate only
    python3 import_cryptograms.py --file puzzles.yaml --share      # Print share links
"""

import os
import sys

import yaml

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cryptic_config import get_setting  # noqa: E402
from cryptogram_share import build_share_query  # noqa: E402
from puzzle_store import get_puzzle_store  # noqa: E402
from validation import validate_submission  # noqa: E402


def load_puzzles_file(filepath):
    """
    Load puzzle entries from a YAML file.

    Accepts a flat list, or a dict with a 'puzzles' list.
    Raises ValueError for anything else.
    """
    filename = os.path.basename(filepath).lower()
    if not filename.endswith(('.yaml', '.yml')):
        raise ValueError(f"Unsupported puzzles file format: {filename}. Expected .yaml or .yml")

    with open(filepath, 'r') as f:
        data = yaml.safe_load(f)  # raises YAMLError with details

    if isinstance(data, dict) and 'puzzles' in data:
        data = data['puzzles']

    if not isinstance(data, list):
        raise ValueError("Unexpected YAML structure: expected a list of puzzles or a dict with a 'puzzles' key")

    return data


def validate_entries(entries):
    """
    Validate every entry.

    Returns (valid, problems): valid is a list of (index, cleaned) and
    problems a list of (index, errors).
    """
    valid = []
    problems = []
    for index, entry in enumerate(entries, start=1):
        cleaned, errors = validate_submission(entry)
        if errors:
            problems.append((index, errors))
        else:
            valid.append((index, cleaned))
    return valid, problems


def _arg_value(flag):
    if flag not in sys.argv:
        return None
    idx = sys.argv.index(flag)
    if idx + 1 >= len(sys.argv):
        return ''
    return sys.argv[idx + 1]


def main():
    dry_run = '--dry-run' in sys.argv
    share = '--share' in sys.argv
    kind = 'user_puzzles' if '--user' in sys.argv else 'cryptograms'

    filepath = _arg_value('--file')
    if not filepath:
        print("ERROR: You must specify --file with a YAML puzzles file.")
        print("  python3 import_cryptograms.py --file puzzles.yaml")
        return 1

    try:
        entries = load_puzzles_file(filepath)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Could not load {filepath}: {e}")
        return 1

    valid, problems = validate_entries(entries)
    for index, errors in problems:
        for error in errors:
            print(f"  ✗ entry {index}: {error}")

    print(f"{len(valid)} valid, {len(problems)} invalid (of {len(entries)})")

    if problems:
        print("ERROR: Fix invalid entries before importing. Nothing was written.")
        return 1

    if share:
        base_url = get_setting('CRYPTICS_PUBLIC_URL', 'http://localhost:8080').rstrip('/')
        for index, cleaned in valid:
            print(f"  {index}: {base_url}/shared?{build_share_query(cleaned)}")
        return 0

    if dry_run:
        print(f"Dry run: would import {len(valid)} puzzles into {kind}")
        return 0

    store = get_puzzle_store()
    for index, cleaned in valid:
        record = store.create_puzzle(kind, cleaned)
        print(f"  ✓ entry {index} -> {kind} #{record['id']}")

    print(f"Imported {len(valid)} puzzles into {kind}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
