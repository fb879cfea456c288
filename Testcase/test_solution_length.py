"""
Length patterns show word and hyphen boundaries, never letters.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from solution_length import get_solution_length_pattern, letter_count  # noqa: E402


def test_single_word():
    assert get_solution_length_pattern('a') == '(1)'
    assert get_solution_length_pattern('cat') == '(3)'


def test_hyphenated_word():
    assert get_solution_length_pattern('dog-gone') == '(3-4)'


def test_multiple_words():
    assert get_solution_length_pattern('hello world') == '(5,5)'
    assert get_solution_length_pattern('my gee-golly') == '(2,3-5)'


def test_empty_solution_has_no_pattern():
    assert get_solution_length_pattern('') == ''


def test_pattern_reveals_no_letters():
    pattern = get_solution_length_pattern('bright-eyed and bushy-tailed')
    assert pattern == '(6-4,3,5-6)'
    assert not any(ch.isalpha() for ch in pattern)


def test_letter_count_skips_separators():
    assert letter_count('see-through') == 10
    assert letter_count('hello world') == 10
    assert letter_count('') == 0
