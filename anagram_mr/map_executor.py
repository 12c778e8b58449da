"""
Map Task Executor
Reads one input split, applies the map function, hash-partitions the
output by key and writes one intermediate file per reduce partition
"""

import os
import json
import time
import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from anagram_mr.anagram_job import map_function
from anagram_mr.errors import ShuffleError
from anagram_mr.line_source import InputSplit, TextLineSource

logger = logging.getLogger(__name__)


def partition_for(key: str, num_partitions: int) -> int:
    """
    Pick the reduce partition for a key.

    MD5 rather than hash() so every process agrees on the destination.
    """
    digest = hashlib.md5(key.encode('utf-8')).hexdigest()
    return int(digest, 16) % num_partitions


def intermediate_file_name(job_id: str, task_id: int, partition_id: int) -> str:
    """Path of an intermediate file relative to the intermediate root"""
    return f"{job_id}/map-{task_id}-reduce-{partition_id}.txt"


@dataclass(frozen=True)
class PartitionLocation:
    """Where a reducer finds one map task's output for one partition"""
    partition_id: int
    file_name: str
    worker_address: Optional[str] = None


@dataclass
class MapResult:
    """Outcome of a successful map task"""
    task_id: int
    locations: List[PartitionLocation] = field(default_factory=list)
    lines_read: int = 0
    pairs_emitted: int = 0
    bytes_written: int = 0
    execution_time_ms: int = 0


class MapExecutor:
    """Executes a single map task"""

    def __init__(self, context, job_id: str, split: InputSplit, source: TextLineSource,
                 min_length: int, num_reduce_tasks: int,
                 map_func: Callable = map_function):
        """
        Initialize the map executor

        Args:
            context: Open ExecutionContext of the run
            job_id: Unique job identifier
            split: Input split this task reads
            source: Line source the split belongs to
            min_length: Minimum token length passed to the map function
            num_reduce_tasks: Number of reduce partitions
            map_func: Map function, (line, min_length) -> iterable of (key, value)
        """
        self.context = context
        self.job_id = job_id
        self.split = split
        self.task_id = split.split_id
        self.source = source
        self.min_length = min_length
        self.num_reduce_tasks = num_reduce_tasks
        self.map_func = map_func

    def execute(self) -> MapResult:
        """
        Execute the map task

        Returns:
            MapResult with the intermediate file locations

        Raises:
            SourceReadError: If the split cannot be read
            JobCancelledError: If the run is cancelled mid-task
            ShuffleError: If an intermediate file cannot be written
        """
        start_time = time.time()
        result = MapResult(task_id=self.task_id)

        try:
            logger.debug(f"Map task {self.task_id}: Reading {self.split.path} "
                         f"[{self.split.start_offset}, {self.split.end_offset})")

            intermediate: Dict[int, List[Tuple[str, str]]] = defaultdict(list)
            for line in self.source.read_split(self.split):
                if result.lines_read % 1000 == 0:
                    self.context.check_cancelled()
                result.lines_read += 1

                for out_key, out_value in self.map_func(line, self.min_length):
                    partition = partition_for(out_key, self.num_reduce_tasks)
                    intermediate[partition].append((out_key, out_value))
                    result.pairs_emitted += 1

            self.context.check_cancelled()
            result.locations, result.bytes_written = self._write_intermediate_files(intermediate)
            self.context.get_memory_usage()

            result.execution_time_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Map task {self.task_id}: {result.lines_read} lines, "
                        f"{result.pairs_emitted} pairs, {len(result.locations)} partition file(s) "
                        f"in {result.execution_time_ms}ms")
            return result

        except Exception as e:
            logger.error(f"Map task failed - Job: {self.job_id}, Task: {self.task_id}. Error: {e}")
            raise

    def _write_intermediate_files(self, intermediate: Dict[int, List[Tuple[str, str]]]):
        """
        Write intermediate key-value pairs as JSON lines, one file per partition

        Returns:
            (list of PartitionLocation, total bytes written)
        """
        root = self.context.intermediate_root
        os.makedirs(os.path.join(root, self.job_id), exist_ok=True)
        address = self.context.shuffle_address

        locations = []
        total_bytes = 0
        for partition, kv_pairs in sorted(intermediate.items()):
            file_name = intermediate_file_name(self.job_id, self.task_id, partition)
            path = os.path.join(root, file_name)

            try:
                with open(path, 'w', encoding='utf-8') as f:
                    for key, value in kv_pairs:
                        f.write(json.dumps({'key': key, 'value': value}) + '\n')
                total_bytes += os.path.getsize(path)
            except OSError as e:
                raise ShuffleError(f"Failed to write intermediate file {path}: {e}") from e
            locations.append(PartitionLocation(partition, file_name, address))

        return locations, total_bytes
