"""
Test configuration for Tally tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import create_root_context, evaluate


@pytest.fixture
def context():
  """Provide a fresh root context for each test"""
  return create_root_context()


@pytest.fixture
def run(context):
  """Evaluate source against the test's root context and return the RuntimeResult"""
  def run_source(source, source_name="<test>"):
    return evaluate(source, source_name, context)

  return run_source


@pytest.fixture
def value_of(run):
  """Evaluate source and return its value, failing the test on a runtime error"""
  def value(source):
    result = run(source)
    assert not result.is_error, str(result.error)
    return result.value

  return value
