"""Test doubles shared across modules."""

import random


class ScriptedRandom(random.Random):
    """Random source replaying a fixed cycle of values from random()."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)
        self._index = 0

    def random(self):
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value
