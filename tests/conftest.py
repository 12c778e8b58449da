"""
Pytest configuration and shared fixtures
"""

import pytest
import os
import tempfile
import shutil

from anagram_mr.context import ExecutionContext
from tests.helpers import SCENARIO_LINES


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def scenario_text():
    """The three-line Mary/Elvis corpus"""
    return '\n'.join(SCENARIO_LINES) + '\n'


@pytest.fixture
def scenario_input_file(temp_dir, scenario_text):
    """Write the scenario corpus to an input file"""
    filepath = os.path.join(temp_dir, 'input.txt')
    with open(filepath, 'w') as f:
        f.write(scenario_text)
    return filepath


@pytest.fixture
def context(temp_dir):
    """Open execution context with local shuffle"""
    with ExecutionContext(max_workers=2, scratch_dir=os.path.join(temp_dir, 'scratch')) as ctx:
        yield ctx
