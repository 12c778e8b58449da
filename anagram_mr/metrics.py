"""
Performance metrics collection for anagram jobs.
"""

import time
import json
from dataclasses import dataclass, asdict


@dataclass
class JobMetrics:
    """Metrics for a single job execution."""

    job_id: str
    start_time: float = 0.0
    end_time: float = 0.0
    map_phase_start: float = 0.0
    map_phase_end: float = 0.0
    reduce_phase_start: float = 0.0
    reduce_phase_end: float = 0.0
    num_map_tasks: int = 0
    num_reduce_tasks: int = 0
    input_size_bytes: int = 0
    intermediate_size_bytes: int = 0
    output_size_bytes: int = 0
    lines_read: int = 0
    pairs_emitted: int = 0
    groups_reduced: int = 0
    entries_written: int = 0
    peak_memory_bytes: int = 0
    status: str = "pending"

    @property
    def total_time_seconds(self) -> float:
        """Total job execution time in seconds."""
        return self.end_time - self.start_time

    @property
    def map_phase_time_seconds(self) -> float:
        """Map phase execution time in seconds."""
        return self.map_phase_end - self.map_phase_start

    @property
    def reduce_phase_time_seconds(self) -> float:
        """Reduce phase execution time in seconds."""
        return self.reduce_phase_end - self.reduce_phase_start

    def start_job(self, input_size: int):
        self.start_time = time.time()
        self.input_size_bytes = input_size
        self.status = "running"

    def start_map_phase(self, num_map_tasks: int):
        self.map_phase_start = time.time()
        self.num_map_tasks = num_map_tasks

    def end_map_phase(self, map_results):
        """Mark the end of the map phase and add up its counters."""
        self.map_phase_end = time.time()
        self.lines_read = sum(r.lines_read for r in map_results)
        self.pairs_emitted = sum(r.pairs_emitted for r in map_results)
        self.intermediate_size_bytes = sum(r.bytes_written for r in map_results)

    def start_reduce_phase(self, num_reduce_tasks: int):
        self.reduce_phase_start = time.time()
        self.num_reduce_tasks = num_reduce_tasks

    def end_reduce_phase(self, reduce_results):
        self.reduce_phase_end = time.time()
        self.groups_reduced = sum(r.groups for r in reduce_results)
        self.entries_written = sum(r.entries_written for r in reduce_results)

    def end_job(self, status: str, output_size: int = 0, peak_memory: int = 0):
        """Mark job completion."""
        self.end_time = time.time()
        self.status = status
        self.output_size_bytes = output_size
        self.peak_memory_bytes = peak_memory

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        data = asdict(self)
        data['total_time_seconds'] = self.total_time_seconds
        data['map_phase_time_seconds'] = self.map_phase_time_seconds
        data['reduce_phase_time_seconds'] = self.reduce_phase_time_seconds
        return data

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def summary(self) -> str:
        return (f"Job {self.job_id} {self.status}: {self.lines_read} lines, "
                f"{self.pairs_emitted} words, {self.groups_reduced} keys, "
                f"{self.entries_written} anagram groups in {self.total_time_seconds:.2f}s")
