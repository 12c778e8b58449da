"""
Shuffle phase: route map output to reduce partitions and group it by key.

Map tasks already hash-partition their output (see map_executor.partition_for),
so every pair with a given key lands in the same partition number on every
map task. A reducer therefore only has to merge the files of its own
partition and group them locally.
"""

import os
import json
import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from anagram_mr.errors import ShuffleError
from anagram_mr.map_executor import MapResult, PartitionLocation

logger = logging.getLogger(__name__)


def collect_locations(map_results: Iterable[MapResult],
                      num_partitions: int) -> Dict[int, List[PartitionLocation]]:
    """
    Gather every map task's file locations by partition id.

    Must only be called once all map tasks have completed.
    """
    by_partition: Dict[int, List[PartitionLocation]] = {p: [] for p in range(num_partitions)}
    for result in map_results:
        for location in result.locations:
            if location.partition_id not in by_partition:
                raise ShuffleError(
                    f"Map task {result.task_id} wrote to unknown partition {location.partition_id}"
                )
            by_partition[location.partition_id].append(location)
    return by_partition


def read_location(location: PartitionLocation, intermediate_root: str) -> bytes:
    """Load one intermediate file, from disk or from the worker that holds it"""
    if location.worker_address:
        # Imported lazily; the local transport does not need grpc
        from anagram_mr.shuffle_service import fetch_partition_file
        return fetch_partition_file(location.worker_address, location.file_name)

    path = os.path.join(intermediate_root, location.file_name)
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ShuffleError(f"Cannot read intermediate file {path}: {e}") from e


def group_partition(locations: Iterable[PartitionLocation], intermediate_root: str,
                    context=None) -> Dict[str, List[str]]:
    """
    Merge the intermediate files of one partition into key -> values

    Raises:
        ShuffleError: If a file is missing, unreachable or malformed; a group
            built from partial data could be filtered out wrongly, so nothing
            is skipped
    """
    key_groups: Dict[str, List[str]] = defaultdict(list)
    files_read = 0
    records = 0

    for location in locations:
        if context is not None:
            context.check_cancelled()

        data = read_location(location, intermediate_root)
        files_read += 1
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ShuffleError(f"Intermediate file {location.file_name} is not UTF-8: {e}") from e

        for line_num, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                key_groups[record['key']].append(record['value'])
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                raise ShuffleError(
                    f"Malformed record in {location.file_name} line {line_num}: {e}"
                ) from e
            records += 1

    logger.debug(f"Grouped {records} records from {files_read} file(s) into {len(key_groups)} keys")
    return key_groups
