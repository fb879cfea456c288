"""
Puzzle Progress Store
=====================

Keeps per-puzzle solving state (typed letters, completion) for a visitor
across reloads, as one JSON list in a single storage slot:

    [{"puzzleId": 12, "puzzleType": "regular", "userInput": ["d", "o", "g"],
      "lastPlayed": 1718000000000, "completedAt": 1718000000000}, ...]

Entries are kept most-recently-touched first and capped at max_entries, so
the oldest entries fall off the end. There is at most one entry per
(puzzleId, puzzleType).

Every read and write except clear_all() is gated on consent. Without
functional consent save/mark_completed return False and load returns None,
even if an entry was written during an earlier consenting visit.

Ports:
    storage  - get(name) -> str or None; set(name, value, days) -> bool
    consent  - is_allowed() -> bool

With max_bytes set, the oldest entries are also dropped until the
percent-encoded blob plus the slot name is at most max_bytes long.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from cryptic_config import MAX_STORED_PUZZLES, PROGRESS_COOKIE_NAME, PROGRESS_RETENTION_DAYS
from cryptogram_types import PuzzleType

DEFAULT_PUZZLE_TYPE = PuzzleType.REGULAR.value
PUZZLE_TYPES = frozenset(t.value for t in PuzzleType)


@dataclass
class PuzzleProgress:
    puzzle_id: int
    puzzle_type: str
    user_input: List[str] = field(default_factory=list)
    last_played: int = 0
    completed_at: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def key(self):
        return (self.puzzle_id, self.puzzle_type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PuzzleProgress':
        return cls(
            puzzle_id=data['puzzleId'],
            puzzle_type=data['puzzleType'],
            user_input=list(data['userInput']),
            last_played=data.get('lastPlayed', 0),
            completed_at=data.get('completedAt'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'puzzleId': self.puzzle_id,
            'puzzleType': self.puzzle_type,
            'userInput': list(self.user_input),
            'lastPlayed': self.last_played,
        }
        if self.completed_at is not None:
            data['completedAt'] = self.completed_at
        return data


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def migrate_progress_entries(raw_entries) -> List[PuzzleProgress]:
    """
    Bring stored entries up to the current shape.

    Entries written before puzzle types existed have no puzzleType and all
    belong to the regular puzzle archive, so they default to "regular".
    Entries that cannot be interpreted at all are dropped.
    """
    entries = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        entry = dict(raw)
        if not entry.get('puzzleType'):
            entry['puzzleType'] = DEFAULT_PUZZLE_TYPE

        if not _is_number(entry.get('puzzleId')):
            continue
        if entry['puzzleType'] not in PUZZLE_TYPES:
            continue
        user_input = entry.get('userInput')
        if not isinstance(user_input, list) or not all(isinstance(c, str) for c in user_input):
            continue
        if not _is_number(entry.get('lastPlayed', 0)):
            entry['lastPlayed'] = 0
        if entry.get('completedAt') is not None and not _is_number(entry['completedAt']):
            entry.pop('completedAt')

        entries.append(PuzzleProgress.from_dict(entry))
    return entries


class MemoryStorage:
    """In-process storage slot map. Used by tests and the CLI."""

    def __init__(self, initial=None):
        self.values = dict(initial or {})
        self.ttl_days = {}

    def get(self, name):
        return self.values.get(name)

    def set(self, name, value, days=30):
        self.values[name] = value
        self.ttl_days[name] = days
        return True


class StaticConsent:
    """Consent port with a fixed answer that tests can flip."""

    def __init__(self, allowed=True):
        self.allowed = allowed

    def is_allowed(self):
        return self.allowed


class PuzzleProgressStore:
    def __init__(self, storage, consent, clock=None,
                 max_entries=MAX_STORED_PUZZLES,
                 retention_days=PROGRESS_RETENTION_DAYS,
                 slot_name=PROGRESS_COOKIE_NAME,
                 max_bytes=None):
        self.storage = storage
        self.consent = consent
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.max_entries = max_entries
        self.retention_days = retention_days
        self.slot_name = slot_name
        self.max_bytes = max_bytes

    # --- internal ---

    def _read_all(self) -> List[PuzzleProgress]:
        """Load and migrate the stored list. Corrupt data reads as empty."""
        blob = self.storage.get(self.slot_name)
        if not blob:
            return []
        try:
            parsed = json.loads(blob)
        except (ValueError, RecursionError) as e:
            print(f"[Progress] Failed to parse stored puzzle progress: {e}")
            return []
        if not isinstance(parsed, list):
            print("[Progress] Stored puzzle progress is not a list, ignoring it")
            return []
        return migrate_progress_entries(parsed)

    def _serialize(self, entries: List[PuzzleProgress]) -> str:
        return json.dumps([e.to_dict() for e in entries], separators=(',', ':'))

    def _fits(self, blob: str) -> bool:
        # Measured as the percent-encoded cookie value plus its name
        if self.max_bytes is None:
            return True
        return len(self.slot_name) + len(quote(blob, safe='')) <= self.max_bytes

    def _write_all(self, entries: List[PuzzleProgress]) -> bool:
        """Write entries, dropping the oldest until the blob fits in max_bytes."""
        blob = self._serialize(entries)
        while len(entries) > 1 and not self._fits(blob):
            entries = entries[:-1]
            blob = self._serialize(entries)
        if not self._fits(blob):
            print("[Progress] Puzzle progress entry too large to store")
            return False
        return self.storage.set(self.slot_name, blob, self.retention_days)

    def _put(self, entry: PuzzleProgress) -> bool:
        existing = [e for e in self._read_all() if e.key() != entry.key()]
        updated = [entry] + existing
        return self._write_all(updated[:self.max_entries])

    # --- public ---

    def save(self, puzzle_id, user_input, puzzle_type=DEFAULT_PUZZLE_TYPE) -> bool:
        """Record in-progress input. False (not an error) without consent."""
        if puzzle_type not in PUZZLE_TYPES:
            print(f"[Progress] Unknown puzzle type {puzzle_type!r}, progress not saved")
            return False
        if not self.consent.is_allowed():
            print("[Progress] Puzzle progress not saved - functional cookies not allowed")
            return False
        entry = PuzzleProgress(
            puzzle_id=puzzle_id,
            puzzle_type=puzzle_type,
            user_input=list(user_input),
            last_played=self.clock(),
        )
        return self._put(entry)

    def mark_completed(self, puzzle_id, user_input, puzzle_type=DEFAULT_PUZZLE_TYPE) -> bool:
        """Record a solved (or revealed) puzzle."""
        if puzzle_type not in PUZZLE_TYPES:
            print(f"[Progress] Unknown puzzle type {puzzle_type!r}, progress not saved")
            return False
        if not self.consent.is_allowed():
            return False
        now = self.clock()
        entry = PuzzleProgress(
            puzzle_id=puzzle_id,
            puzzle_type=puzzle_type,
            user_input=list(user_input),
            last_played=now,
            completed_at=now,
        )
        return self._put(entry)

    def load(self, puzzle_id, puzzle_type=DEFAULT_PUZZLE_TYPE) -> Optional[PuzzleProgress]:
        if not self.consent.is_allowed():
            return None
        for entry in self._read_all():
            if entry.key() == (puzzle_id, puzzle_type):
                return entry
        return None

    def is_completed(self, puzzle_id, puzzle_type=DEFAULT_PUZZLE_TYPE) -> bool:
        entry = self.load(puzzle_id, puzzle_type)
        return entry is not None and entry.is_completed

    def recently_played(self, limit=10) -> List[PuzzleProgress]:
        if not self.consent.is_allowed():
            return []
        entries = sorted(self._read_all(), key=lambda e: e.last_played, reverse=True)
        return entries[:limit]

    def completed_count(self) -> int:
        if not self.consent.is_allowed():
            return 0
        return sum(1 for e in self._read_all() if e.is_completed)

    def clear_all(self) -> bool:
        """Erase every entry. Not consent-gated: visitors can always remove their data."""
        return self._write_all([])
