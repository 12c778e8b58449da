"""
Unit tests for ExecutionContext
"""

import os
import pytest

from anagram_mr.context import ExecutionContext
from anagram_mr.errors import JobCancelledError


class TestExecutionContext:
    """Tests for resource lifecycle and cancellation"""

    def test_scoped_lifecycle(self, temp_dir):
        with ExecutionContext(max_workers=2, scratch_dir=temp_dir) as ctx:
            scratch = ctx.scratch_dir
            assert os.path.isdir(scratch)
            assert ctx.intermediate_root.startswith(scratch)
            assert ctx.submit(sum, [1, 2, 3]).result() == 6
            assert ctx.shuffle_address is None

        assert not os.path.exists(scratch)
        assert ctx.executor is None

    def test_closed_on_error(self, temp_dir):
        with pytest.raises(RuntimeError):
            with ExecutionContext(scratch_dir=temp_dir) as ctx:
                scratch = ctx.scratch_dir
                raise RuntimeError("boom")
        assert not os.path.exists(scratch)

    def test_close_twice(self, temp_dir):
        ctx = ExecutionContext(scratch_dir=temp_dir).open()
        ctx.close()
        ctx.close()

    def test_submit_requires_open_context(self):
        with pytest.raises(RuntimeError):
            ExecutionContext().submit(sum, [])

    def test_cancel(self, context):
        assert not context.cancelled
        context.check_cancelled()

        context.cancel()

        assert context.cancelled
        with pytest.raises(JobCancelledError):
            context.check_cancelled()
        with pytest.raises(JobCancelledError):
            context.submit(sum, [])

    def test_reset_cancel(self, context):
        context.cancel()
        context.reset_cancel()

        assert not context.cancelled
        assert context.submit(sum, [1, 2]).result() == 3

    def test_memory_usage_tracks_peak(self, context):
        rss = context.get_memory_usage()
        assert rss > 0
        assert context.peak_memory_bytes >= rss

    def test_grpc_transport_starts_shuffle_server(self, temp_dir):
        with ExecutionContext(scratch_dir=temp_dir, shuffle_transport='grpc') as ctx:
            host, port = ctx.shuffle_address.rsplit(':', 1)
            assert host == 'localhost'
            assert int(port) > 0
        assert ctx.shuffle_server is None
