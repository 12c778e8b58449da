"""
Error types raised by the anagram job.
"""


class AnagramJobError(Exception):
    """Base class for all job failures"""


class ConfigurationError(AnagramJobError):
    """Invalid arguments or settings, raised before any pipeline work starts"""


class SourceReadError(AnagramJobError):
    """Input location is missing or cannot be read"""


class ShuffleError(AnagramJobError):
    """An intermediate partition file could not be read, fetched or decoded"""


class SinkWriteError(AnagramJobError):
    """Output location cannot be written or committed"""


class JobCancelledError(AnagramJobError):
    """The run was cancelled through its execution context"""
