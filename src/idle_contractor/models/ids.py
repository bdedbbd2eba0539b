"""Identifier helper.

Ids are version-4 UUID strings drawn from the caller's random source so
a seeded run produces the same ids every time.
"""

import random
import uuid


def new_id(rng: random.Random) -> str:
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))
