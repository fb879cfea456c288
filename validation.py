"""
Submission validation and sanitization.

Solutions must be lowercase letters split into words by single spaces or
hyphens; separators may not lead, trail or repeat. Free-text fields are
trimmed, length-capped and stripped of HTML tags before they are stored.
"""

import re

from cryptogram_share import normalize_difficulty, normalize_source

MAX_PUZZLE_LENGTH = 1000
MAX_EXPLANATION_LENGTH = 5000
MAX_DISPLAY_NAME_LENGTH = 50

_SOLUTION_RE = re.compile(r'^[a-z]+(?:[ -][a-z]+)*$')
_TAG_RE = re.compile(r'<[^>]*>')
_DISPLAY_NAME_RE = re.compile(r'[^a-zA-Z0-9 _-]')

_EXPLANATION_ENTITIES = {
    '<': '&lt;',
    '>': '&gt;',
    '"': '&quot;',
    "'": '&#x27;',
    '&': '&amp;',
}


def validate_solution(solution):
    return bool(_SOLUTION_RE.match(solution or ''))


def sanitize_puzzle_text(text):
    if not text:
        return ''
    text = _TAG_RE.sub('', text.strip()[:MAX_PUZZLE_LENGTH])
    return text.replace('<', '&lt;').replace('>', '&gt;')


def sanitize_explanation(text):
    if not text:
        return ''
    text = _TAG_RE.sub('', text.strip()[:MAX_EXPLANATION_LENGTH])
    return re.sub(r'[<>"\'&]', lambda m: _EXPLANATION_ENTITIES[m.group(0)], text)


def sanitize_display_name(name):
    if not name:
        return ''
    return _DISPLAY_NAME_RE.sub('', name.strip()[:MAX_DISPLAY_NAME_LENGTH])


def validate_submission(data):
    """
    Validate a puzzle submission.

    Returns (cleaned, errors). cleaned is None whenever errors is non-empty.
    The solution is lowercased before checking, so "Dog-Gone" is accepted
    and stored as "dog-gone".
    """
    if not isinstance(data, dict):
        return None, ['Puzzle data must be an object']

    errors = []
    puzzle = data.get('puzzle')
    solution = data.get('solution')
    explanation = data.get('explanation')

    if not isinstance(puzzle, str) or not puzzle.strip():
        errors.append('Puzzle and solution are required')
    elif not isinstance(solution, str) or not solution.strip():
        errors.append('Puzzle and solution are required')

    solution = solution.strip().lower() if isinstance(solution, str) else ''
    if solution and not validate_solution(solution):
        errors.append('Solution may only contain letters, with single spaces or hyphens between words')

    if explanation is not None and not isinstance(explanation, str):
        errors.append('Explanation must be text')

    if errors:
        return None, errors

    cleaned = {
        'puzzle': sanitize_puzzle_text(puzzle),
        'solution': solution,
        'explanation': sanitize_explanation(explanation) or None,
        'source': normalize_source(data.get('source')).value,
        'difficulty': normalize_difficulty(data.get('difficulty')),
        'private': bool(data.get('private', False)),
    }
    if not cleaned['puzzle']:
        return None, ['Puzzle text is empty after removing markup']
    return cleaned, []
