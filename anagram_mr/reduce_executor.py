"""
Reduce Task Executor
Groups one partition's intermediate data by key, applies the reduce
function and hands the formatted records to the sink
"""

import time
import logging
from dataclasses import dataclass
from typing import Callable, List

from anagram_mr.anagram_job import format_record, reduce_function
from anagram_mr.map_executor import PartitionLocation
from anagram_mr.shuffle import group_partition
from anagram_mr.sink import TextRecordSink

logger = logging.getLogger(__name__)


@dataclass
class ReduceResult:
    """Outcome of a successful reduce task"""
    partition_id: int
    groups: int = 0
    entries_written: int = 0
    execution_time_ms: int = 0


class ReduceExecutor:
    """Executes a single reduce task"""

    def __init__(self, context, job_id: str, partition_id: int,
                 locations: List[PartitionLocation], sink: TextRecordSink,
                 reduce_func: Callable = reduce_function,
                 format_func: Callable = format_record):
        """
        Initialize the reduce executor

        Args:
            context: Open ExecutionContext of the run
            job_id: Unique job identifier
            partition_id: Partition this task is responsible for
            locations: Every map task's file for this partition
            sink: Prepared record sink
            reduce_func: (key, values) -> iterable of (key, value)
            format_func: (key, value) -> output record line
        """
        self.context = context
        self.job_id = job_id
        self.partition_id = partition_id
        self.locations = locations
        self.sink = sink
        self.reduce_func = reduce_func
        self.format_func = format_func

    def execute(self) -> ReduceResult:
        """
        Execute the reduce task

        Raises:
            ShuffleError: If the partition's input is incomplete
            SinkWriteError: If the part file cannot be written
            JobCancelledError: If the run is cancelled mid-task
        """
        start_time = time.time()
        result = ReduceResult(partition_id=self.partition_id)

        try:
            key_groups = group_partition(self.locations, self.context.intermediate_root,
                                         context=self.context)
            result.groups = len(key_groups)

            records = []
            for i, key in enumerate(sorted(key_groups)):  # Sorted for reproducible part files
                if i % 1000 == 0:
                    self.context.check_cancelled()
                for out_key, out_value in self.reduce_func(key, key_groups[key]):
                    records.append(self.format_func(out_key, out_value))

            self.context.check_cancelled()
            result.entries_written = self.sink.write_partition(self.partition_id, records)
            self.context.get_memory_usage()

            result.execution_time_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Reduce task {self.partition_id}: {result.groups} groups, "
                        f"{result.entries_written} entries in {result.execution_time_ms}ms")
            return result

        except Exception as e:
            logger.error(f"Reduce task failed - Job: {self.job_id}, Task: {self.partition_id}. Error: {e}")
            raise
