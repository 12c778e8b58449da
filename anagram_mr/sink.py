"""
Record sink.
Writes result records into a staging directory next to the output location
and publishes them with a single rename, so readers see either the complete
result set or nothing.
"""

import os
import shutil
import logging
import tempfile
from typing import Iterable, Optional

from anagram_mr.errors import SinkWriteError

logger = logging.getLogger(__name__)

SUCCESS_MARKER = '_SUCCESS'


def part_file_name(partition_id: int) -> str:
    return f"part-{partition_id:05d}"


class TextRecordSink:
    """Plain-text output directory with one part file per reduce partition"""

    def __init__(self, output_path: str, overwrite: bool = False):
        self.output_path = os.path.abspath(output_path)
        self.overwrite = overwrite
        self.staging_dir: Optional[str] = None
        self.committed = False

    def prepare(self) -> str:
        """
        Check the output location and create the staging directory

        Returns:
            Path of the staging directory

        Raises:
            SinkWriteError: If the output exists and overwrite is off, or the
                parent directory cannot be written
        """
        if os.path.exists(self.output_path) and not self.overwrite:
            raise SinkWriteError(f"Output location already exists: {self.output_path}")

        parent = os.path.dirname(self.output_path)
        try:
            os.makedirs(parent, exist_ok=True)
            self.staging_dir = tempfile.mkdtemp(
                prefix=f".{os.path.basename(self.output_path)}.", suffix='.staging', dir=parent
            )
        except OSError as e:
            raise SinkWriteError(f"Cannot create staging directory in {parent}: {e}") from e

        logger.debug(f"Staging output in {self.staging_dir}")
        return self.staging_dir

    def write_partition(self, partition_id: int, records: Iterable[str]) -> int:
        """
        Write the records of one partition to its part file

        Returns:
            Number of records written
        """
        if self.staging_dir is None:
            raise SinkWriteError("Sink has not been prepared")

        path = os.path.join(self.staging_dir, part_file_name(partition_id))
        written = 0
        try:
            with open(path, 'w', encoding='utf-8') as f:
                for record in records:
                    f.write(record + '\n')
                    written += 1
        except OSError as e:
            raise SinkWriteError(f"Failed to write {path}: {e}") from e
        return written

    def commit(self) -> str:
        """
        Publish the staged part files at the output location

        Raises:
            SinkWriteError: If the output appeared meanwhile without overwrite,
                or the rename fails
        """
        if self.staging_dir is None:
            raise SinkWriteError("Sink has not been prepared")

        replaced = None
        try:
            open(os.path.join(self.staging_dir, SUCCESS_MARKER), 'w').close()

            if os.path.exists(self.output_path):
                if not self.overwrite:
                    raise SinkWriteError(f"Output location already exists: {self.output_path}")
                replaced = f"{self.staging_dir}.old"
                os.rename(self.output_path, replaced)

            os.rename(self.staging_dir, self.output_path)
        except OSError as e:
            if replaced is not None and not os.path.exists(self.output_path):
                # Put the previous output back so the location is never left empty
                os.rename(replaced, self.output_path)
            raise SinkWriteError(f"Failed to publish output to {self.output_path}: {e}") from e

        self.staging_dir = None
        self.committed = True
        if replaced is not None:
            if os.path.isdir(replaced):
                shutil.rmtree(replaced, ignore_errors=True)
            else:
                try:
                    os.remove(replaced)
                except OSError as e:
                    logger.warning(f"Could not remove replaced output {replaced}: {e}")
        logger.info(f"Output committed to {self.output_path}")
        return self.output_path

    def abort(self):
        """Drop staged output; the output location is left untouched."""
        if self.staging_dir and os.path.exists(self.staging_dir):
            shutil.rmtree(self.staging_dir, ignore_errors=True)
            logger.info(f"Discarded staged output {self.staging_dir}")
        self.staging_dir = None

    def output_size(self) -> int:
        """Bytes in the committed part files"""
        if not self.committed:
            return 0
        return sum(
            os.path.getsize(os.path.join(self.output_path, name))
            for name in os.listdir(self.output_path)
            if name.startswith('part-')
        )
