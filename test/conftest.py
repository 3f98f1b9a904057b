"""
Test configuration for the EX interpreter tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import create_interpreter
from parsing import create_parser


@pytest.fixture
def interpreter():
  """Fresh interpreter with an empty global scope"""
  return create_interpreter()


@pytest.fixture
def parser():
  return create_parser()


@pytest.fixture
def run(interpreter, parser, capsys):
  """Parse and run source on the shared interpreter, returning what it printed"""
  def _run(source):
    interpreter.interpret(parser.parse_string(source))
    return capsys.readouterr().out
  return _run
