import os
import random

import pytest

from parley import formatters
from parley.expander import MoveNode

GREET = "greet"


@pytest.fixture(autouse=True)
def clean_parley_env(monkeypatch):
    """Keep PARLEY_* variables from the developer's shell out of tests."""
    for var in list(os.environ):
        if var.startswith("PARLEY_"):
            monkeypatch.delenv(var)


@pytest.fixture
def rng() -> random.Random:
    """A seeded random source so every test run makes the same choices."""
    return random.Random(1234)


@pytest.fixture
def greeting_nodes() -> dict[str, MoveNode]:
    """A greeting built from one of two interchangeable words."""
    return {
        "greet": MoveNode(
            dialog_moves={GREET},
            formatter=formatters.join_parts(suffix="."),
            parts=[["hello", "hi"]],
        ),
        "hello": MoveNode(formatter=formatters.static("Hello")),
        "hi": MoveNode(formatter=formatters.static("Hi")),
    }
