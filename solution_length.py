"""
Length patterns for cryptic solutions.

The pattern shown after a clue reveals word and hyphen boundaries but no
letters: "dog-gone" -> "(3-4)", "hello world" -> "(5,5)",
"my gee-golly" -> "(2,3-5)".
"""


def get_solution_length_pattern(solution):
    if not solution:
        return ''

    word_patterns = []
    for word in solution.split(' '):
        if not word:
            continue
        word_patterns.append('-'.join(str(len(part)) for part in word.split('-')))

    return f"({','.join(word_patterns)})"


def letter_count(solution):
    """Number of letter positions (separators excluded)."""
    return sum(1 for ch in solution if ch not in (' ', '-'))
