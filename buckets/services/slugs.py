from __future__ import annotations

import random
from typing import AbstractSet, Container, Optional


def distinct_chars(charset: str) -> str:
    return "".join(dict.fromkeys(charset))


class SlugGenerator:
    """Random fixed-length identifiers drawn uniformly from a charset.

    Slugs listed in ``reserved`` are never handed out.
    """

    def __init__(
        self,
        *,
        charset: str,
        size: int,
        seed: Optional[int] = None,
        reserved: AbstractSet[str] = frozenset(),
    ) -> None:
        self.charset = distinct_chars(charset)
        self.size = size
        self.reserved = reserved
        self._rng = random.Random(seed)

    @property
    def keyspace(self) -> int:
        return len(self.charset) ** self.size - sum(1 for key in self.reserved if self.drawable(key))

    def drawable(self, key: str) -> bool:
        return len(key) == self.size and set(key) <= set(self.charset)

    def draw(self) -> str:
        return "".join(self._rng.choice(self.charset) for _ in range(self.size))

    def generate(self, taken: Container[str]) -> str:
        # The keyspace is strictly larger than the entry cap, so a free slug always exists.
        while True:
            slug = self.draw()
            if slug not in taken and slug not in self.reserved:
                return slug
