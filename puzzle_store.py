#!/usr/bin/env python3
"""
Puzzle Storage Manager
======================

Stores and retrieves cryptic clues on the local filesystem, one folder per
puzzle, grouped by kind.

Storage structure:
    puzzles/
    ├── cryptograms/          # Official archive (puzzle type "regular")
    │   ├── 1/
    │   │   └── puzzle.json
    │   └── 2/
    │       └── puzzle.json
    └── user_puzzles/         # User submissions (puzzle type "user")
        └── ...

Deleting a puzzle only marks it hidden; hidden puzzles are never returned.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

from cryptic_config import DEFAULT_PAGE_SIZE, get_setting

KINDS = ('cryptograms', 'user_puzzles')


class PuzzleStore:
    def __init__(self, base_path='puzzles'):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _kind_dir(self, kind):
        if kind not in KINDS:
            raise ValueError(f"Unknown puzzle kind: {kind}")
        return self.base_path / kind

    def _get_puzzle_file(self, kind, puzzle_id):
        return self._kind_dir(kind) / str(int(puzzle_id)) / 'puzzle.json'

    def _read(self, path):
        with open(path, 'r') as f:
            return json.load(f)

    def _write(self, path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(data, f, indent=2)

    def _iter_records(self, kind):
        kind_dir = self._kind_dir(kind)
        if not kind_dir.exists():
            return
        for puzzle_dir in kind_dir.iterdir():
            puzzle_file = puzzle_dir / 'puzzle.json'
            if puzzle_dir.is_dir() and puzzle_file.exists():
                yield self._read(puzzle_file)

    def _next_id(self, kind):
        kind_dir = self._kind_dir(kind)
        if not kind_dir.exists():
            return 1
        ids = [int(d.name) for d in kind_dir.iterdir() if d.is_dir() and d.name.isdigit()]
        return max(ids, default=0) + 1

    def create_puzzle(self, kind, data, creator_id=None, creator_name=None):
        """
        Save a new puzzle.

        Args:
            kind: 'cryptograms' or 'user_puzzles'
            data: Dict with puzzle, solution, explanation, source, difficulty
            creator_id / creator_name: submitter, for user puzzles

        Returns:
            The stored record, including its new id
        """
        record = {
            'id': self._next_id(kind),
            'puzzle': data['puzzle'],
            'solution': data['solution'],
            'explanation': data.get('explanation'),
            'source': data['source'],
            'difficulty': data['difficulty'],
            'date_added': datetime.now(timezone.utc).isoformat(),
            'hidden': False,
            'private': bool(data.get('private', False)),
        }
        if kind == 'user_puzzles':
            record['creator_id'] = creator_id
            record['creator_name'] = creator_name

        self._write(self._get_puzzle_file(kind, record['id']), record)
        return record

    def get_puzzle(self, kind, puzzle_id):
        """Return a visible puzzle record, or None."""
        puzzle_file = self._get_puzzle_file(kind, puzzle_id)
        if not puzzle_file.exists():
            return None
        record = self._read(puzzle_file)
        if record.get('hidden'):
            return None
        return record

    def list_puzzles(self, kind, page=1, limit=DEFAULT_PAGE_SIZE, creator_id=None):
        """
        List visible puzzles, newest first.

        User puzzles marked private are excluded. page is 1-based.
        Pass limit=None for every puzzle.
        """
        records = [r for r in self._iter_records(kind) if not r.get('hidden')]
        if kind == 'user_puzzles':
            records = [r for r in records if not r.get('private')]
        if creator_id is not None:
            records = [r for r in records if r.get('creator_id') == creator_id]

        records.sort(key=lambda r: (r.get('date_added') or '', r['id']), reverse=True)

        if limit is None:
            return records
        offset = (max(page, 1) - 1) * limit
        return records[offset:offset + limit]

    def get_latest_puzzle(self, kind):
        latest = self.list_puzzles(kind, page=1, limit=1)
        return latest[0] if latest else None

    def hide_puzzle(self, kind, puzzle_id, creator_id=None):
        """Soft-delete a puzzle. With creator_id, only that creator's puzzle is hidden."""
        puzzle_file = self._get_puzzle_file(kind, puzzle_id)
        if not puzzle_file.exists():
            return False

        record = self._read(puzzle_file)
        if record.get('hidden'):
            return False
        if creator_id is not None and record.get('creator_id') != creator_id:
            return False

        record['hidden'] = True
        self._write(puzzle_file, record)
        return True


def get_puzzle_store():
    """
    Pick the store backend from CRYPTICS_STORE ('local' or 'supabase').

    The Supabase backend is required explicitly; it is never used as a
    silent fallback, and a misconfigured Supabase store raises.
    """
    backend = get_setting('CRYPTICS_STORE', 'local').strip().lower()
    if backend == 'supabase':
        from puzzle_store_supabase import PuzzleStoreSupabase
        return PuzzleStoreSupabase()
    if backend != 'local':
        raise ValueError(f"CRYPTICS_STORE must be 'local' or 'supabase', got '{backend}'")
    return PuzzleStore(get_setting('CRYPTICS_PUZZLE_DIR', 'puzzles'))
