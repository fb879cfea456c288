"""
Answer checking: separators are ignored, case is ignored, blanks are empty.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402

from answer_check import (  # noqa: E402
    check_answer,
    correct_letters,
    is_answer_complete,
    normalize_string,
)


SOLUTIONS = [
    'dog',
    'a',
    'hello world',
    'see-through',
    'hello world-this is a test',
    'my gee-golly',
]


def test_correct_without_separators():
    assert check_answer(['d', 'o', 'g'], 'dog')


def test_correct_with_space_slot_left_blank():
    user_input = ['h', 'e', 'l', 'l', 'o', '', 'w', 'o', 'r', 'l', 'd']
    assert check_answer(user_input, 'hello world')


def test_correct_with_hyphen_slot_left_blank():
    user_input = ['s', 'e', 'e', '', 't', 'h', 'r', 'o', 'u', 'g', 'h']
    assert check_answer(user_input, 'see-through')


def test_literal_separators_in_input_are_ignored():
    assert check_answer(['s', 'e', 'e', '-', 't', 'h', 'r', 'o', 'u', 'g', 'h'], 'see-through')
    assert check_answer(['a', ' ', 'b'], 'a b')


def test_compact_input_matches_hyphenated_solution():
    assert check_answer(['a', 'l', 'o', 'n', 'e'], 'a-lone')


def test_wrong_letters():
    assert not check_answer(['c', 'a', 't'], 'dog')
    assert not check_answer(['h', 'e', 'l', 'l', 'x'], 'hello')


def test_empty_and_short_input_are_not_correct():
    assert not check_answer(['', '', ''], 'dog')
    assert not check_answer(['d', 'o'], 'dog')
    assert not check_answer([], 'dog')


def test_case_insensitive():
    assert check_answer(['D', 'O', 'G'], 'dog')
    assert check_answer(['h', 'e', 'l', 'l', 'o'], 'HeLLo')


def test_empty_solution():
    assert check_answer([], '')
    assert not check_answer(['a'], '')
    assert is_answer_complete([], '')


@pytest.mark.parametrize('solution', SOLUTIONS)
def test_correct_letters_always_checks(solution):
    assert check_answer(correct_letters(solution), solution)
    assert is_answer_complete(correct_letters(solution), solution)


@pytest.mark.parametrize('solution', SOLUTIONS)
def test_normalize_equal_input_checks(solution):
    typed = list(normalize_string(solution).upper())
    assert check_answer(typed, solution)


def test_normalize_string():
    assert normalize_string('hello world') == 'helloworld'
    assert normalize_string('see-through') == 'seethrough'
    assert normalize_string('HeLLo-World test') == 'helloworldtest'
    assert normalize_string('') == ''
    assert normalize_string('- - -') == ''
    assert normalize_string('   ') == ''


def test_complete_when_every_letter_filled():
    assert is_answer_complete(['d', 'o', 'g'], 'dog')
    assert is_answer_complete(['h', 'e', 'l', 'l', 'o', '', 'w', 'o', 'r', 'l', 'd'], 'hello world')


def test_incomplete_with_gaps_or_whitespace():
    assert not is_answer_complete(['d', '', 'g'], 'dog')
    assert not is_answer_complete(['', '', ''], 'dog')
    assert not is_answer_complete([' ', '', '  '], 'dog')


def test_short_input_is_incomplete_not_an_error():
    assert not is_answer_complete(['d'], 'dog')
    assert not is_answer_complete([], 'see-through')


def test_completeness_is_monotonic():
    solution = 'see-through'
    slots = [''] * len(solution)
    letter_positions = [i for i, ch in enumerate(solution) if ch != '-']

    was_complete = False
    for position in letter_positions:
        slots[position] = solution[position]
        now_complete = is_answer_complete(slots, solution)
        assert now_complete or not was_complete
        was_complete = now_complete
    assert was_complete
