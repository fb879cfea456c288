"""
Cryptogram data model shared by the store, the share codec and the API.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Source(str, Enum):
    """Provenance of a puzzle. Affects display and moderation only."""
    USER_SUBMITTED = 'USER_SUBMITTED'
    AI_GENERATED = 'AI_GENERATED'
    OFFICIAL = 'OFFICIAL'

    @classmethod
    def values(cls):
        return [s.value for s in cls]


class PuzzleType(str, Enum):
    """Which store a puzzle came from, used to key progress entries."""
    REGULAR = 'regular'
    USER = 'user'


# Store table / directory name for each puzzle type
STORE_KINDS = {
    PuzzleType.REGULAR: 'cryptograms',
    PuzzleType.USER: 'user_puzzles',
}


def parse_date(value):
    """Accept a datetime or an ISO-8601 string (with optional trailing Z)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    return datetime.now(timezone.utc)


@dataclass
class Cryptogram:
    """A single cryptic clue and its answer key."""
    id: int
    puzzle: str
    solution: str
    source: Source = Source.USER_SUBMITTED
    difficulty: int = 3
    explanation: Optional[str] = None
    date_added: Optional[datetime] = None

    @property
    def is_shared(self) -> bool:
        """Ephemeral puzzles carried in a share link have negative ids."""
        return self.id < 0

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Cryptogram':
        """Build from a store row (extra columns such as hidden are ignored)."""
        source = record.get('source')
        return cls(
            id=int(record['id']),
            puzzle=record['puzzle'],
            solution=record['solution'],
            source=Source(source) if source in Source.values() else Source.USER_SUBMITTED,
            difficulty=int(record.get('difficulty') or 3),
            explanation=record.get('explanation') or None,
            date_added=parse_date(record.get('date_added')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'puzzle': self.puzzle,
            'solution': self.solution,
            'explanation': self.explanation,
            'source': self.source.value,
            'difficulty': self.difficulty,
            'date_added': self.date_added.isoformat() if self.date_added else None,
        }
