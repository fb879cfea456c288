#!/usr/bin/env python3
"""
Cryptics Web Server
===================

JSON API for the cryptic clue archive, user submissions, shareable links
and per-visitor solving progress.

Puzzle responses never include the solution or explanation while the
puzzle is being played; they carry the length pattern instead. The answer
is returned once the solver gets it right or gives up.

Progress lives in the visitor's own cookies and is only read or written
while functional cookies are accepted (see cookies.py).

Usage:
    python cryptics_server.py

Then open http://localhost:8080/status in your browser.
"""

import time

from flask import Flask, request, jsonify, g

from answer_check import check_answer, correct_letters, is_answer_complete
from auth import get_current_user, require_auth, require_permissions_any
from cookies import (
    ConsentGate,
    CookieStorage,
    delete_non_essential_cookies,
    get_cookie_consent,
    needs_consent,
    set_cookie_consent,
)
from cryptic_config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MAX_PROGRESS_COOKIE_BYTES, get_setting
from cryptogram_share import (
    ShareValidationError,
    build_share_query,
    decode_cryptogram_from_params,
    encode_cryptogram_to_params,
)
from cryptogram_types import STORE_KINDS, Cryptogram, PuzzleType
from puzzle_progress import PUZZLE_TYPES, PuzzleProgressStore
from puzzle_store import get_puzzle_store
from solution_length import get_solution_length_pattern, letter_count
from validation import sanitize_display_name, validate_submission

puzzle_store = get_puzzle_store()
print(f"Using puzzle store: {type(puzzle_store).__name__}")

app = Flask(__name__)

INVALID_SHARE_MESSAGE = 'This shared puzzle link is invalid or has been corrupted.'
MAX_INPUT_SLOTS = 200

REGULAR = PuzzleType.REGULAR.value
USER = PuzzleType.USER.value


# ---------------------------------------------------------------------------
# Request hooks
# ---------------------------------------------------------------------------

@app.before_request
def _start_timer():
    g._start_time = time.monotonic()


@app.after_request
def _finish_request(response):
    storage = g.get('cookie_storage')
    if storage is not None and storage.dirty:
        storage.apply(response)

    if request.path.startswith('/api/'):
        duration = int((time.monotonic() - g.get('_start_time', time.monotonic())) * 1000)
        print(f"[API] {request.method} {request.path} -> {response.status_code} ({duration}ms)")
    return response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _cookie_storage():
    if 'cookie_storage' not in g:
        g.cookie_storage = CookieStorage(request.cookies)
    return g.cookie_storage


def _progress_store():
    storage = _cookie_storage()
    return PuzzleProgressStore(storage, ConsentGate(storage), max_bytes=MAX_PROGRESS_COOKIE_BYTES)


def _parse_id(raw):
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _parse_page_args():
    page = _parse_id(request.args.get('page')) or 1
    limit = _parse_id(request.args.get('limit')) or DEFAULT_PAGE_SIZE
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


def _json_object():
    """JSON request body as a dict. Anything else reads as an empty object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _parse_user_input(data):
    """Return the userInput slot list from a JSON body, or None if malformed."""
    if not isinstance(data, dict):
        return None
    user_input = data.get('userInput')
    if not isinstance(user_input, list) or len(user_input) > MAX_INPUT_SLOTS:
        return None
    if not all(isinstance(slot, str) and len(slot) <= 1 for slot in user_input):
        return None
    return user_input


def public_view(cryptogram, puzzle_type, reveal=False):
    """Puzzle as shown to a solver. Answer fields only when reveal is set."""
    view = {
        'id': cryptogram.id,
        'puzzle': cryptogram.puzzle,
        'source': cryptogram.source.value,
        'difficulty': cryptogram.difficulty,
        'date_added': cryptogram.date_added.isoformat() if cryptogram.date_added else None,
        'puzzleType': puzzle_type,
        'lengthPattern': get_solution_length_pattern(cryptogram.solution),
        'letterCount': letter_count(cryptogram.solution),
        'slots': len(cryptogram.solution),
        'separators': {i: ch for i, ch in enumerate(cryptogram.solution) if ch in (' ', '-')},
    }
    if reveal:
        view['solution'] = cryptogram.solution
        view['explanation'] = cryptogram.explanation
    return view


def _load_cryptogram(puzzle_type, raw_id):
    """Returns (cryptogram, error_response)."""
    puzzle_id = _parse_id(raw_id)
    if puzzle_id is None:
        return None, (jsonify({'error': 'Invalid ID'}), 400)

    record = puzzle_store.get_puzzle(STORE_KINDS[PuzzleType(puzzle_type)], puzzle_id)
    if record is None:
        return None, (jsonify({'error': 'Puzzle not found'}), 404)
    return Cryptogram.from_record(record), None


def _check_and_record(cryptogram, puzzle_type, user_input):
    """Check typed slots; a correct answer is recorded as completed."""
    complete = is_answer_complete(user_input, cryptogram.solution)
    correct = complete and check_answer(user_input, cryptogram.solution)

    result = {'correct': correct, 'complete': complete}
    if correct:
        result['saved'] = _progress_store().mark_completed(cryptogram.id, user_input, puzzle_type)
        result['solution'] = cryptogram.solution
        result['explanation'] = cryptogram.explanation
    return result


def _reveal_and_record(cryptogram, puzzle_type):
    """Give up: return the answer and record the puzzle as completed."""
    saved = _progress_store().mark_completed(
        cryptogram.id, correct_letters(cryptogram.solution), puzzle_type)
    view = public_view(cryptogram, puzzle_type, reveal=True)
    view['saved'] = saved
    return view


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@app.route('/status')
def status():
    """Return server status including storage backend type."""
    store_type = type(puzzle_store).__name__
    return jsonify({
        'storage_backend': 'supabase' if store_type == 'PuzzleStoreSupabase' else 'local',
        'store_type': store_type,
        'connected': True,
    })


# ---------------------------------------------------------------------------
# Official archive (puzzle type "regular")
# ---------------------------------------------------------------------------

@app.route('/api/cryptograms', methods=['GET'])
def list_cryptograms():
    records = puzzle_store.list_puzzles('cryptograms', limit=None)
    return jsonify([public_view(Cryptogram.from_record(r), REGULAR) for r in records])


@app.route('/api/cryptograms/latest', methods=['GET'])
def latest_cryptogram():
    record = puzzle_store.get_latest_puzzle('cryptograms')
    if record is None:
        return '', 204
    return jsonify(public_view(Cryptogram.from_record(record), REGULAR))


@app.route('/api/cryptograms/paginated', methods=['GET'], defaults={'puzzle_type': REGULAR})
@app.route('/api/user-puzzles/paginated', methods=['GET'], defaults={'puzzle_type': USER})
def paginated_puzzles(puzzle_type):
    page, limit = _parse_page_args()
    kind = STORE_KINDS[PuzzleType(puzzle_type)]
    records = puzzle_store.list_puzzles(kind, page=page, limit=limit)
    return jsonify({
        'page': page,
        'limit': limit,
        'puzzles': [public_view(Cryptogram.from_record(r), puzzle_type) for r in records],
    })


@app.route('/api/cryptograms/<puzzle_id>', methods=['GET'], defaults={'puzzle_type': REGULAR})
@app.route('/api/user-puzzles/<puzzle_id>', methods=['GET'], defaults={'puzzle_type': USER})
def get_puzzle(puzzle_id, puzzle_type):
    cryptogram, error = _load_cryptogram(puzzle_type, puzzle_id)
    if error:
        return error
    return jsonify(public_view(cryptogram, puzzle_type))


@app.route('/api/cryptograms', methods=['POST'])
@require_permissions_any(['member', 'admin'])
def create_cryptogram():
    cleaned, errors = validate_submission(request.get_json(silent=True))
    if errors:
        return jsonify({'error': errors[0], 'errors': errors}), 400

    record = puzzle_store.create_puzzle('cryptograms', cleaned)
    print(f"[Store] Created cryptogram {record['id']}")
    return jsonify(Cryptogram.from_record(record).to_dict()), 201


@app.route('/api/cryptograms/<puzzle_id>', methods=['DELETE'])
@require_permissions_any(['admin'])
def delete_cryptogram(puzzle_id):
    parsed_id = _parse_id(puzzle_id)
    if parsed_id is None:
        return jsonify({'error': 'Invalid ID'}), 400
    if not puzzle_store.hide_puzzle('cryptograms', parsed_id):
        return jsonify({'error': 'Cryptogram not found'}), 404
    return jsonify({'message': 'Cryptogram deleted successfully', 'id': parsed_id})


# ---------------------------------------------------------------------------
# User submissions (puzzle type "user")
# ---------------------------------------------------------------------------

@app.route('/api/user-puzzles/submit', methods=['POST'])
@require_auth
def submit_user_puzzle():
    data = _json_object()
    cleaned, errors = validate_submission(data.get('puzzle'))
    if errors:
        return jsonify({'error': errors[0], 'errors': errors}), 400

    user = get_current_user()
    creator_name = sanitize_display_name(data.get('display_name') or '') or 'Anonymous'
    record = puzzle_store.create_puzzle('user_puzzles', cleaned,
                                        creator_id=user['id'], creator_name=creator_name)
    print(f"[Store] User {user['id']} submitted puzzle {record['id']}")
    return jsonify(Cryptogram.from_record(record).to_dict()), 201


@app.route('/api/user-puzzles/mine', methods=['GET'])
@require_auth
def my_user_puzzles():
    page, limit = _parse_page_args()
    records = puzzle_store.list_puzzles('user_puzzles', page=page, limit=limit,
                                        creator_id=get_current_user()['id'])
    return jsonify([Cryptogram.from_record(r).to_dict() for r in records])


@app.route('/api/user-puzzles/<puzzle_id>', methods=['DELETE'])
@require_auth
def delete_user_puzzle(puzzle_id):
    parsed_id = _parse_id(puzzle_id)
    if parsed_id is None:
        return jsonify({'error': 'Invalid ID'}), 400
    if not puzzle_store.hide_puzzle('user_puzzles', parsed_id, creator_id=get_current_user()['id']):
        return jsonify({'error': 'Puzzle not found'}), 404
    return jsonify({'message': 'Puzzle deleted successfully', 'id': parsed_id})


# ---------------------------------------------------------------------------
# Solving
# ---------------------------------------------------------------------------

@app.route('/api/cryptograms/<puzzle_id>/check', methods=['POST'], defaults={'puzzle_type': REGULAR})
@app.route('/api/user-puzzles/<puzzle_id>/check', methods=['POST'], defaults={'puzzle_type': USER})
def check_puzzle(puzzle_id, puzzle_type):
    user_input = _parse_user_input(request.get_json(silent=True))
    if user_input is None:
        return jsonify({'error': 'userInput must be a list of single characters'}), 400

    cryptogram, error = _load_cryptogram(puzzle_type, puzzle_id)
    if error:
        return error
    return jsonify(_check_and_record(cryptogram, puzzle_type, user_input))


@app.route('/api/cryptograms/<puzzle_id>/reveal', methods=['POST'], defaults={'puzzle_type': REGULAR})
@app.route('/api/user-puzzles/<puzzle_id>/reveal', methods=['POST'], defaults={'puzzle_type': USER})
def reveal_puzzle(puzzle_id, puzzle_type):
    cryptogram, error = _load_cryptogram(puzzle_type, puzzle_id)
    if error:
        return error
    return jsonify(_reveal_and_record(cryptogram, puzzle_type))


# ---------------------------------------------------------------------------
# Shared links (never stored; puzzle type "user")
# ---------------------------------------------------------------------------

@app.route('/api/share', methods=['POST'])
def create_share_link():
    """Encode a puzzle into a link. Nothing is written to the store."""
    data = request.get_json(silent=True)
    try:
        params = encode_cryptogram_to_params(data)
    except ShareValidationError as e:
        return jsonify({'error': str(e)}), 400

    base_url = get_setting('CRYPTICS_PUBLIC_URL', 'http://localhost:8080').rstrip('/')
    return jsonify({
        **params,
        'url': f"{base_url}/shared?{build_share_query(data)}",
    })


def _shared_or_404(params):
    cryptogram = decode_cryptogram_from_params(params)
    if cryptogram is None:
        return None, (jsonify({'error': INVALID_SHARE_MESSAGE}), 404)
    return cryptogram, None


@app.route('/api/shared', methods=['GET'])
def get_shared_puzzle():
    cryptogram, error = _shared_or_404(request.args)
    if error:
        return error
    return jsonify(public_view(cryptogram, USER))


@app.route('/api/shared/check', methods=['POST'])
def check_shared_puzzle():
    data = request.get_json(silent=True)
    user_input = _parse_user_input(data)
    if user_input is None:
        return jsonify({'error': 'userInput must be a list of single characters'}), 400

    cryptogram, error = _shared_or_404(data)
    if error:
        return error
    return jsonify(_check_and_record(cryptogram, USER, user_input))


@app.route('/api/shared/reveal', methods=['POST'])
def reveal_shared_puzzle():
    cryptogram, error = _shared_or_404(_json_object())
    if error:
        return error
    return jsonify(_reveal_and_record(cryptogram, USER))


# ---------------------------------------------------------------------------
# Progress (cookie-backed, consent-gated)
# ---------------------------------------------------------------------------

def _parse_progress_key(puzzle_type, puzzle_id):
    parsed_id = _parse_id(puzzle_id)
    if parsed_id is None or puzzle_type not in PUZZLE_TYPES:
        return None
    return parsed_id


@app.route('/api/progress/<puzzle_type>/<puzzle_id>', methods=['GET'])
def get_progress(puzzle_type, puzzle_id):
    parsed_id = _parse_progress_key(puzzle_type, puzzle_id)
    if parsed_id is None:
        return jsonify({'error': 'Invalid puzzle type or ID'}), 400

    entry = _progress_store().load(parsed_id, puzzle_type)
    return jsonify({'progress': entry.to_dict() if entry else None})


@app.route('/api/progress/<puzzle_type>/<puzzle_id>', methods=['PUT'])
def save_progress(puzzle_type, puzzle_id):
    parsed_id = _parse_progress_key(puzzle_type, puzzle_id)
    if parsed_id is None:
        return jsonify({'error': 'Invalid puzzle type or ID'}), 400
    user_input = _parse_user_input(request.get_json(silent=True))
    if user_input is None:
        return jsonify({'error': 'userInput must be a list of single characters'}), 400

    saved = _progress_store().save(parsed_id, user_input, puzzle_type)
    result = {'saved': saved}
    if not saved:
        result['notice'] = 'Progress is not saved unless functional cookies are allowed.'
    return jsonify(result)


@app.route('/api/progress/recent', methods=['GET'])
def recent_progress():
    limit = min(max(_parse_id(request.args.get('limit')) or 10, 1), MAX_PAGE_SIZE)
    entries = _progress_store().recently_played(limit)
    return jsonify([e.to_dict() for e in entries])


@app.route('/api/progress/stats', methods=['GET'])
def progress_stats():
    return jsonify({'completed': _progress_store().completed_count()})


@app.route('/api/progress', methods=['DELETE'])
def clear_progress():
    return jsonify({'cleared': _progress_store().clear_all()})


# ---------------------------------------------------------------------------
# Cookie consent
# ---------------------------------------------------------------------------

@app.route('/api/consent', methods=['GET'])
def get_consent():
    storage = _cookie_storage()
    return jsonify({
        'consent': get_cookie_consent(storage),
        'needsConsent': needs_consent(storage),
    })


@app.route('/api/consent', methods=['POST'])
def update_consent():
    data = _json_object()
    storage = _cookie_storage()
    consent = set_cookie_consent(
        storage,
        functional=data.get('functional', False),
        analytics=data.get('analytics', False),
        marketing=data.get('marketing', False),
    )
    deleted = delete_non_essential_cookies(storage)
    return jsonify({'consent': consent, 'deletedCookies': deleted})


if __name__ == '__main__':
    print("Starting Cryptics Server...")
    print("Open http://localhost:8080/status in your browser")
    app.run(debug=True, port=8080, host='0.0.0.0')
