import random

import pytest

from core import TileIdAllocator, tiles_from_grid
from storage import MemoryStore


class ScriptedRandom(random.Random):
    """Always picks the first empty cell and a fixed tile value."""

    def __init__(self, four=False):
        super().__init__(0)
        self.four = four

    def choice(self, seq):
        return seq[0]

    def random(self):
        return 0.0 if self.four else 0.5


class ManualScheduler:
    """Collects scheduled callbacks until the test fires them."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))

    def run_all(self):
        calls, self.calls = self.calls, []
        for _, callback in calls:
            callback()


@pytest.fixture
def rng():
    return random.Random(2048)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def make_tiles():
    def build(grid):
        return tiles_from_grid(grid, TileIdAllocator())
    return build


def random_grid(rng, values=(0, 0, 2, 4, 8, 16)):
    return [[rng.choice(values) for _ in range(4)] for _ in range(4)]
