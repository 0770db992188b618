import sys
import os

import pytest

# Make the root-level module importable without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import transmogrify


@pytest.fixture(autouse=True)
def quiet():
    """main() flips the module-level VERBOSE flag; restore it after each test."""
    transmogrify.VERBOSE = False
    yield
    transmogrify.VERBOSE = False
