"""
Answer checking for cryptic solutions.

A solution is letters grouped into words by single spaces or hyphens
("see-through", "hello world"). The solver types into one slot per character
position of the solution; slots under separators are left blank and never
compared.
"""

import re

SEPARATORS = (' ', '-')

_STRIP_RE = re.compile(r'[\s-]')


def normalize_string(text):
    """Lowercase and remove every space and hyphen."""
    return _STRIP_RE.sub('', text).lower()


def solution_letters(solution):
    """Letter characters of the solution, in order."""
    return [ch for ch in solution if ch not in SEPARATORS]


def check_answer(user_input, solution):
    """
    Compare typed slots with the solution, ignoring separators.

    Blank slots and slots holding a literal space or hyphen are dropped from
    the user side; spaces and hyphens are dropped from the solution. The two
    letter sequences must then match exactly, case-insensitively.
    """
    user_letters = [ch for ch in user_input if ch and ch not in SEPARATORS]
    expected = solution_letters(solution)

    if len(user_letters) != len(expected):
        return False

    return all(u.lower() == s.lower() for u, s in zip(user_letters, expected))


def is_answer_complete(user_input, solution):
    """True when every letter position of the solution has a non-blank slot."""
    for index, ch in enumerate(solution):
        if ch in SEPARATORS:
            continue
        if index >= len(user_input):
            return False
        slot = user_input[index]
        if not slot or not slot.strip():
            return False
    return True


def correct_letters(solution):
    """The slot list a perfect solver would type: letters, blanks at separators."""
    return ['' if ch in SEPARATORS else ch for ch in solution]
