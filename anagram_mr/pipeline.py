"""
AnagramPipeline, drives one run: map tasks over the input splits, the
shuffle barrier, reduce tasks per partition and the final commit.
"""

import os
import shutil
import logging
from concurrent.futures import as_completed, wait
from typing import List, Optional

from anagram_mr.config import JobConfig
from anagram_mr.line_source import TextLineSource
from anagram_mr.map_executor import MapExecutor, MapResult
from anagram_mr.metrics import JobMetrics
from anagram_mr.reduce_executor import ReduceExecutor, ReduceResult
from anagram_mr.shuffle import collect_locations
from anagram_mr.sink import TextRecordSink

logger = logging.getLogger(__name__)


class AnagramPipeline:
    """Anagram count over one input location, written to one output location"""

    def __init__(self, context, config: JobConfig,
                 source: Optional[TextLineSource] = None,
                 sink: Optional[TextRecordSink] = None):
        self.context = context
        self.config = config.validate()
        self.job_id = config.job_id
        self.source = source or TextLineSource(config.input_path)
        self.sink = sink or TextRecordSink(config.output_path, overwrite=config.overwrite)
        self.metrics = JobMetrics(job_id=self.job_id)

    def run(self) -> JobMetrics:
        """
        Execute the job end to end

        Returns:
            JobMetrics of the completed run

        Raises:
            AnagramJobError: Any source, shuffle, sink or cancellation failure.
                Nothing is published at the output location in that case.
        """
        logger.info(f"Starting job {self.job_id}: N={self.config.min_length}, "
                    f"input={self.config.input_path}, output={self.config.output_path}")
        # Clear a cancellation left over from an earlier run on this context
        self.context.reset_cancel()
        try:
            # Fail on bad input or an existing output before doing any work
            input_size = self.source.total_size()
            self.sink.prepare()
            self.metrics.start_job(input_size)

            map_results = self._map_phase()
            locations = collect_locations(map_results, self.config.num_reduce_tasks)
            self._reduce_phase(locations)

            self.sink.commit()
        except BaseException:
            self.sink.abort()
            self.metrics.end_job("failed", peak_memory=self.context.peak_memory_bytes)
            raise
        finally:
            self._cleanup_intermediate()

        self.context.get_memory_usage()
        self.metrics.end_job("completed", output_size=self.sink.output_size(),
                             peak_memory=self.context.peak_memory_bytes)
        logger.info(self.metrics.summary())
        return self.metrics

    def _map_phase(self) -> List[MapResult]:
        splits = self.source.splits(self.config.num_map_tasks)
        self.metrics.start_map_phase(len(splits))
        logger.info(f"Map phase: {len(splits)} task(s)")

        executors = [
            MapExecutor(self.context, self.job_id, split, self.source,
                        self.config.min_length, self.config.num_reduce_tasks)
            for split in splits
        ]
        results = self._run_tasks(executors)
        self.metrics.end_map_phase(results)
        return results

    def _reduce_phase(self, locations) -> List[ReduceResult]:
        num_partitions = self.config.num_reduce_tasks
        self.metrics.start_reduce_phase(num_partitions)
        logger.info(f"Reduce phase: {num_partitions} task(s)")

        executors = [
            ReduceExecutor(self.context, self.job_id, partition_id,
                           locations[partition_id], self.sink)
            for partition_id in range(num_partitions)
        ]
        results = self._run_tasks(executors)
        self.metrics.end_reduce_phase(results)
        return results

    def _run_tasks(self, executors) -> list:
        """
        Run every executor on the worker pool and wait for all of them.

        The first failure cancels the context, so the remaining tasks stop
        at their next checkpoint, then the failure is re-raised.
        """
        futures = []
        try:
            for executor in executors:
                futures.append(self.context.submit(executor.execute))
            return [future.result() for future in as_completed(futures)]
        except BaseException:
            self.context.cancel()
            for future in futures:
                future.cancel()
            wait(futures)
            raise

    def _cleanup_intermediate(self):
        if self.context.scratch_dir is None:
            return
        job_dir = os.path.join(self.context.intermediate_root, self.job_id)
        if os.path.exists(job_dir):
            shutil.rmtree(job_dir, ignore_errors=True)
            logger.debug(f"Removed intermediate files in {job_dir}")
