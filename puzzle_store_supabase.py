#!/usr/bin/env python3
"""
Puzzle Storage Manager - Supabase Backend
==========================================

Stores and retrieves cryptic clues using Supabase PostgreSQL.
Maintains same API as file-based PuzzleStore for compatibility.

Tables:
    cryptograms  - Official archive (puzzle type "regular")
    user_puzzles - User submissions (puzzle type "user"), with creator_id,
                   creator_name and private columns

Both tables carry id, puzzle, solution, explanation, source, difficulty,
date_added and hidden. Deletion sets hidden = true.
"""

import os
from datetime import datetime, timezone
from typing import Dict, List, Optional

from cryptic_config import DEFAULT_PAGE_SIZE, load_env
from puzzle_store import KINDS

_COLUMNS = ('puzzle', 'solution', 'explanation', 'source', 'difficulty')


class PuzzleStoreSupabase:
    """Supabase-backed puzzle storage with same API as file-based PuzzleStore."""

    def __init__(self, client=None):
        if client is None:
            from supabase import create_client

            load_env()
            url = os.environ.get("SUPABASE_URL")
            key = os.environ.get("SUPABASE_ANON_KEY")
            if not url or not key:
                raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set in environment")
            client = create_client(url, key)

        self.client = client

    def _table(self, kind):
        if kind not in KINDS:
            raise ValueError(f"Unknown puzzle kind: {kind}")
        return self.client.table(kind)

    def create_puzzle(self, kind: str, data: Dict, creator_id: str = None,
                      creator_name: str = None) -> Dict:
        """
        Insert a new puzzle row.

        Returns:
            The inserted row, including its database id
        """
        record = {column: data.get(column) for column in _COLUMNS}
        record['date_added'] = datetime.now(timezone.utc).isoformat()
        record['hidden'] = False
        if kind == 'user_puzzles':
            record['creator_id'] = creator_id
            record['creator_name'] = creator_name
            record['private'] = bool(data.get('private', False))

        result = self._table(kind).insert(record).execute()
        if not result.data:
            raise ValueError(f"Insert into {kind} returned no row")
        return result.data[0]

    def get_puzzle(self, kind: str, puzzle_id: int) -> Optional[Dict]:
        result = self._table(kind).select('*').eq(
            'id', int(puzzle_id)
        ).eq('hidden', False).execute()

        return result.data[0] if result.data else None

    def list_puzzles(self, kind: str, page: int = 1, limit: Optional[int] = DEFAULT_PAGE_SIZE,
                     creator_id: str = None) -> List[Dict]:
        """List visible puzzles, newest first. Private user puzzles are excluded."""
        query = self._table(kind).select('*').eq('hidden', False)
        if kind == 'user_puzzles':
            query = query.eq('private', False)
        if creator_id is not None:
            query = query.eq('creator_id', creator_id)

        query = query.order('date_added', desc=True).order('id', desc=True)
        if limit is not None:
            offset = (max(page, 1) - 1) * limit
            query = query.range(offset, offset + limit - 1)

        result = query.execute()
        return result.data or []

    def get_latest_puzzle(self, kind: str) -> Optional[Dict]:
        latest = self.list_puzzles(kind, page=1, limit=1)
        return latest[0] if latest else None

    def hide_puzzle(self, kind: str, puzzle_id: int, creator_id: str = None) -> bool:
        query = self._table(kind).update({'hidden': True}).eq(
            'id', int(puzzle_id)
        ).eq('hidden', False)
        if creator_id is not None:
            query = query.eq('creator_id', creator_id)

        result = query.execute()
        return bool(result.data)
