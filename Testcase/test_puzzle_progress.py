"""
Progress store: consent gating, replace-and-prepend, bounded retention,
legacy migration and corrupt-data handling.
"""

import json
import sys
import os
from urllib.parse import quote

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptic_config import PROGRESS_COOKIE_NAME  # noqa: E402
from puzzle_progress import (  # noqa: E402
    MemoryStorage,
    PuzzleProgressStore,
    StaticConsent,
    migrate_progress_entries,
)


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1000
        return self.now


def make_store(allowed=True, max_entries=50, initial=None, max_bytes=None):
    storage = MemoryStorage(initial)
    consent = StaticConsent(allowed)
    store = PuzzleProgressStore(storage, consent, clock=FakeClock(),
                                max_entries=max_entries, max_bytes=max_bytes)
    return store, storage, consent


def stored_entries(storage):
    return json.loads(storage.get(PROGRESS_COOKIE_NAME))


def test_save_then_load():
    store, _, _ = make_store()
    assert store.save(5, ['d', 'o', 'g'], 'user')

    entry = store.load(5, 'user')
    assert entry.user_input == ['d', 'o', 'g']
    assert entry.completed_at is None
    assert not store.is_completed(5, 'user')


def test_mark_completed():
    store, _, _ = make_store()
    store.save(5, ['d', 'o', ''], 'user')
    assert store.mark_completed(5, ['d', 'o', 'g'], 'user')

    assert store.is_completed(5, 'user')
    assert store.load(5, 'user').user_input == ['d', 'o', 'g']


def test_puzzle_type_is_part_of_the_key():
    store, _, _ = make_store()
    store.save(5, ['a'], 'regular')
    store.save(5, ['b'], 'user')

    assert store.load(5, 'regular').user_input == ['a']
    assert store.load(5, 'user').user_input == ['b']
    assert store.load(5).user_input == ['a']


def test_one_entry_per_key_most_recent_first():
    store, storage, _ = make_store()
    store.save(1, ['a'])
    store.save(2, ['b'])
    store.save(1, ['c'])

    entries = stored_entries(storage)
    assert [e['puzzleId'] for e in entries] == [1, 2]
    assert entries[0]['userInput'] == ['c']


def test_saved_input_is_copied():
    store, _, _ = make_store()
    user_input = ['d', 'o']
    store.save(1, user_input)
    user_input.append('g')
    assert store.load(1).user_input == ['d', 'o']


def test_eviction_drops_least_recently_touched():
    store, storage, _ = make_store(max_entries=3)
    for puzzle_id in (1, 2, 3):
        store.save(puzzle_id, ['x'])
    store.save(1, ['y'])   # touch 1 again, 2 is now oldest
    store.save(4, ['z'])

    entries = stored_entries(storage)
    assert len(entries) == 3
    assert [e['puzzleId'] for e in entries] == [4, 1, 3]
    assert store.load(2) is None


def test_list_never_exceeds_maximum():
    store, storage, _ = make_store(max_entries=50)
    for puzzle_id in range(120):
        store.save(puzzle_id, ['x'])
    entries = stored_entries(storage)
    assert len(entries) == 50
    assert entries[0]['puzzleId'] == 119


def test_no_consent_blocks_save():
    store, storage, _ = make_store(allowed=False)
    assert store.save(5, ['d']) is False
    assert store.mark_completed(5, ['d']) is False
    assert storage.get(PROGRESS_COOKIE_NAME) is None


def test_revoked_consent_hides_existing_progress():
    store, _, consent = make_store()
    store.mark_completed(5, ['d', 'o', 'g'], 'user')

    consent.allowed = False
    assert store.load(5, 'user') is None
    assert store.is_completed(5, 'user') is False
    assert store.recently_played() == []
    assert store.completed_count() == 0

    consent.allowed = True
    assert store.is_completed(5, 'user')


def test_clear_all_ignores_consent():
    store, storage, consent = make_store()
    store.save(5, ['d'])
    consent.allowed = False

    assert store.clear_all()
    assert stored_entries(storage) == []

    consent.allowed = True
    assert store.load(5) is None


def test_writes_use_retention_window():
    store, storage, _ = make_store()
    store.save(1, ['a'])
    assert storage.ttl_days[PROGRESS_COOKIE_NAME] == 30


def test_legacy_entries_default_to_regular():
    legacy = json.dumps([
        {'puzzleId': 7, 'userInput': ['c', 'a', 't'], 'lastPlayed': 10, 'completedAt': 10},
    ])
    store, _, _ = make_store(initial={PROGRESS_COOKIE_NAME: legacy})

    entry = store.load(7, 'regular')
    assert entry is not None
    assert entry.puzzle_type == 'regular'
    assert store.is_completed(7)
    assert store.load(7, 'user') is None


def test_legacy_entry_is_rewritten_with_type_on_next_save():
    legacy = json.dumps([{'puzzleId': 7, 'userInput': ['c'], 'lastPlayed': 10}])
    store, storage, _ = make_store(initial={PROGRESS_COOKIE_NAME: legacy})
    store.save(8, ['d'])

    entries = stored_entries(storage)
    assert entries[1] == {'puzzleId': 7, 'puzzleType': 'regular', 'userInput': ['c'], 'lastPlayed': 10}


def test_migration_drops_uninterpretable_entries():
    entries = migrate_progress_entries([
        'junk',
        {'puzzleId': 'seven', 'userInput': []},
        {'puzzleId': 1, 'userInput': 'abc'},
        {'puzzleId': 2, 'puzzleType': 'weekly', 'userInput': []},
        {'puzzleId': 3, 'userInput': ['a'], 'lastPlayed': 'yesterday'},
    ])
    assert len(entries) == 1
    assert entries[0].puzzle_id == 3
    assert entries[0].last_played == 0


def test_corrupt_blob_reads_as_empty():
    for blob in ('{not json', '{"puzzleId": 1}', '42'):
        store, _, _ = make_store(initial={PROGRESS_COOKIE_NAME: blob})
        assert store.load(1) is None
        assert store.save(1, ['a'])
        assert store.load(1).user_input == ['a']


def test_deeply_nested_blob_reads_as_empty():
    store, _, _ = make_store(initial={PROGRESS_COOKIE_NAME: '[' * 3000 + ']' * 3000})
    assert store.load(1) is None
    assert store.recently_played() == []
    assert store.save(1, ['a'])
    assert store.load(1).user_input == ['a']


def test_unknown_puzzle_type_is_not_written():
    store, storage, _ = make_store()
    assert not store.save(1, ['a'], 'weekly')
    assert not store.mark_completed(1, ['a'], 'weekly')
    assert storage.get(PROGRESS_COOKIE_NAME) is None


def test_oldest_entries_dropped_to_fit_byte_limit():
    store, storage, _ = make_store(max_bytes=1000)
    for puzzle_id in range(10):
        assert store.save(puzzle_id, ['x'] * 20)

    blob = storage.get(PROGRESS_COOKIE_NAME)
    assert len(PROGRESS_COOKIE_NAME) + len(quote(blob, safe='')) <= 1000
    entries = json.loads(blob)
    assert 0 < len(entries) < 10
    assert [e['puzzleId'] for e in entries] == list(range(9, 9 - len(entries), -1))
    assert store.load(9).user_input == ['x'] * 20


def test_entry_larger_than_byte_limit_is_not_written():
    store, storage, _ = make_store(max_bytes=100)
    assert not store.save(1, ['x'] * 50)
    assert storage.get(PROGRESS_COOKIE_NAME) is None
    assert store.clear_all()


def test_recently_played_and_completed_count():
    store, _, _ = make_store()
    store.save(1, ['a'])
    store.mark_completed(2, ['b'])
    store.save(3, ['c'])

    assert [e.puzzle_id for e in store.recently_played(limit=2)] == [3, 2]
    assert store.completed_count() == 1
