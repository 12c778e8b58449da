"""
Job configuration.
Defaults come from the environment; command-line options override them.
"""

import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from anagram_mr.errors import ConfigurationError

SHUFFLE_TRANSPORTS = ('local', 'grpc')


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def default_num_map_tasks() -> int:
    return _env_int('ANAGRAM_NUM_MAP_TASKS', 4)


def default_num_reduce_tasks() -> int:
    return _env_int('ANAGRAM_NUM_REDUCE_TASKS', 4)


def default_max_workers() -> int:
    return _env_int('ANAGRAM_MAX_WORKERS', 4)


def default_shuffle_transport() -> str:
    return os.getenv('ANAGRAM_SHUFFLE_TRANSPORT', 'local')


def default_scratch_dir() -> Optional[str]:
    return os.getenv('ANAGRAM_SCRATCH_DIR') or None


def default_log_level() -> str:
    return os.getenv('ANAGRAM_LOG_LEVEL', 'INFO')


@dataclass
class JobConfig:
    """Settings for one anagram count run"""
    min_length: int
    input_path: str
    output_path: str
    num_map_tasks: int = field(default_factory=default_num_map_tasks)
    num_reduce_tasks: int = field(default_factory=default_num_reduce_tasks)
    max_workers: int = field(default_factory=default_max_workers)
    overwrite: bool = False
    shuffle_transport: str = field(default_factory=default_shuffle_transport)
    shuffle_host: str = 'localhost'
    shuffle_port: int = 0
    scratch_dir: Optional[str] = field(default_factory=default_scratch_dir)
    metrics_file: Optional[str] = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def validate(self):
        """
        Check every setting before the run starts

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if not isinstance(self.min_length, int) or isinstance(self.min_length, bool):
            raise ConfigurationError(f"N must be an integer, got {self.min_length!r}")
        if self.min_length < 1:
            raise ConfigurationError(f"N must be at least 1, got {self.min_length}")
        if not self.input_path:
            raise ConfigurationError("Input location must not be empty")
        if not self.output_path:
            raise ConfigurationError("Output location must not be empty")
        for name in ('num_map_tasks', 'num_reduce_tasks', 'max_workers'):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {value}")
        if self.shuffle_transport not in SHUFFLE_TRANSPORTS:
            raise ConfigurationError(
                f"Unknown shuffle transport {self.shuffle_transport!r}, "
                f"expected one of {', '.join(SHUFFLE_TRANSPORTS)}"
            )
        if not 0 <= self.shuffle_port <= 65535:
            raise ConfigurationError(f"Invalid shuffle port {self.shuffle_port}")
        if self.metrics_file:
            parent = os.path.dirname(os.path.abspath(self.metrics_file))
            if not os.path.isdir(parent):
                raise ConfigurationError(f"Metrics file directory does not exist: {parent}")
        return self
