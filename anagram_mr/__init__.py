"""
Anagram MapReduce
Groups anagrams in a text corpus and counts how often each form appears
"""

from anagram_mr.errors import (
    AnagramJobError,
    ConfigurationError,
    JobCancelledError,
    ShuffleError,
    SinkWriteError,
    SourceReadError,
)

__version__ = "1.0.0"
