"""
Anagram count job.
Emits (sorted letters, word) pairs from text lines, counts each word form per
key and keeps only keys that have more than one distinct form.
"""

import re
from collections import Counter
from typing import Dict, Iterable, Iterator, Optional, Tuple

# At most one of these is removed from the end of a word
TRAILING_PUNCTUATION = (',', '.', ';')

# Whitespace runs, except the no-break spaces and NEL, which stay inside words
WORD_SEPARATOR = re.compile(r'[^\S\xa0\u2007\u202f\x85]+')


def canonical_key(word: str) -> str:
    """Return the word's characters sorted by code point."""
    return ''.join(sorted(word))


def normalize_word(word: str, min_length: int) -> Optional[str]:
    """
    Turn a raw word into a token.

    Args:
        word: Candidate word taken from a split line
        min_length: Words shorter than this are dropped

    Returns:
        The lowercased word with one trailing ',', '.' or ';' removed,
        or None if it is too short before or after trimming
    """
    if len(word) < min_length:
        return None
    if word.endswith(TRAILING_PUNCTUATION):
        word = word[:-1]
    if len(word) < min_length:
        return None
    return word.lower()


def map_function(line: Optional[str], min_length: int) -> Iterator[Tuple[str, str]]:
    """
    Map function: emit (canonical key, token) for each usable word in the line.

    Args:
        line: Text line (may be None)
        min_length: Minimum token length

    Yields:
        (canonical_key, token) tuples
    """
    if line is None or len(line) < min_length:
        return

    for word in WORD_SEPARATOR.split(line):
        if not word:
            continue
        token = normalize_word(word, min_length)
        if token is None:
            continue
        yield (canonical_key(token), token)


def count_words(words: Iterable[str]) -> Counter:
    """Build the frequency map of one group."""
    return Counter(words)


def has_anagrams(key: str, frequencies: Dict[str, int]) -> bool:
    """Keep a group only when it holds at least two distinct words."""
    return len(frequencies) > 1


def format_record(key: str, frequencies: Dict[str, int]) -> str:
    """
    Serialize a result entry as ``(key,{word=count, word=count})``.

    Words are written in ascending order so repeated runs produce identical files.
    """
    pairs = ', '.join(f"{word}={count}" for word, count in sorted(frequencies.items()))
    return f"({key},{{{pairs}}})"


def reduce_function(key: str, values: Iterable[str]) -> Iterator[Tuple[str, Counter]]:
    """
    Reduce function: count the words of one group and drop singletons.

    Args:
        key: Canonical key
        values: All tokens emitted for the key, in any order

    Yields:
        (key, frequency map) when the group has an anagram pair
    """
    frequencies = count_words(values)
    if has_anagrams(key, frequencies):
        yield (key, frequencies)
