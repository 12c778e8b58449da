"""
Line source.
Resolves the input location to files and reads them as byte-range splits
aligned to line boundaries, so map tasks can read in parallel.
"""

import os
import glob
import logging
from dataclasses import dataclass
from typing import Iterator, List

from anagram_mr.errors import SourceReadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputSplit:
    """Byte range [start_offset, end_offset) of one input file"""
    split_id: int
    path: str
    start_offset: int
    end_offset: int

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


class TextLineSource:
    """Reads text lines from a file, a directory of files or a glob pattern"""

    def __init__(self, input_location: str, encoding: str = 'utf-8'):
        self.input_location = input_location
        self.encoding = encoding
        self._files = None

    def files(self) -> List[str]:
        """
        Resolve the input location to a sorted list of regular files

        Raises:
            SourceReadError: If the location does not exist or a pattern matches nothing
        """
        if self._files is not None:
            return self._files

        location = self.input_location
        if os.path.isfile(location):
            files = [location]
        elif os.path.isdir(location):
            files = [
                os.path.join(location, name)
                for name in sorted(os.listdir(location))
                if not name.startswith(('.', '_'))
                and os.path.isfile(os.path.join(location, name))
            ]
        elif any(c in location for c in '*?['):
            files = sorted(p for p in glob.glob(location) if os.path.isfile(p))
            if not files:
                raise SourceReadError(f"Input pattern matches no files: {location}")
        else:
            raise SourceReadError(f"Input location not found: {location}")

        for path in files:
            if not os.access(path, os.R_OK):
                raise SourceReadError(f"Input file is not readable: {path}")

        self._files = files
        return files

    def total_size(self) -> int:
        """Total size in bytes of all input files"""
        try:
            return sum(os.path.getsize(path) for path in self.files())
        except OSError as e:
            raise SourceReadError(f"Cannot stat input: {e}") from e

    def splits(self, num_splits: int) -> List[InputSplit]:
        """
        Divide the input into roughly num_splits byte ranges

        Every file gets at least one split unless it is empty. Split sizes are
        shared across files, so many small files produce one split each.
        """
        if num_splits < 1:
            raise ValueError("num_splits must be at least 1")

        total = self.total_size()
        chunk_size = max(1, -(-total // num_splits))

        splits = []
        for path in self.files():
            file_size = os.path.getsize(path)
            for start in range(0, file_size, chunk_size):
                end = min(start + chunk_size, file_size)
                splits.append(InputSplit(len(splits), path, start, end))

        logger.info(f"Divided {len(self.files())} input file(s), {total} bytes, into {len(splits)} split(s)")
        return splits

    def read_split(self, split: InputSplit) -> Iterator[str]:
        """
        Yield every line that starts inside the split, without its line terminator

        Raises:
            SourceReadError: If the file cannot be opened or read
        """
        try:
            with open(split.path, 'rb') as f:
                if split.start_offset > 0:
                    # A line belongs to the split holding its first byte
                    f.seek(split.start_offset - 1)
                    if f.read(1) != b'\n':
                        f.readline()

                while f.tell() < split.end_offset:
                    raw = f.readline()
                    if not raw:
                        break
                    yield raw.decode(self.encoding, errors='replace').rstrip('\r\n')
        except OSError as e:
            raise SourceReadError(f"Failed to read {split.path}: {e}") from e

    def read_lines(self) -> Iterator[str]:
        """Yield all lines of all input files in order"""
        for split in self.splits(1):
            yield from self.read_split(split)
