"""
Playground toolkit: random data generators and a delay helper.

Every playground file sees the toolkit under the `tools` binding:

    >>> name = tools.random.full_name()
    >>> await tools.wait(250)

Invariants:
    - The toolkit is read-only; attribute assignment raises AttributeError
    - Generators draw from one random.Random, so a fixed seed gives a
      repeatable run

How to change safely:
    - New generators must be public methods of RandomGenerators with a
      docstring; render_toolkit_stub() picks them up automatically
"""

from __future__ import annotations

import asyncio
import inspect
import uuid as _uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from random import Random
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

FIRST_NAMES = (
    "Ada", "Alan", "Alice", "Amara", "Ben", "Carla", "Chen", "Dana", "Diego",
    "Elena", "Emil", "Farah", "Grace", "Hana", "Ivan", "Jonas", "Kai", "Lena",
    "Marco", "Maya", "Nina", "Omar", "Priya", "Quinn", "Rosa", "Sam", "Tariq",
    "Uma", "Victor", "Wen", "Yusuf", "Zoe",
)

LAST_NAMES = (
    "Anderson", "Bauer", "Castro", "Dubois", "Evans", "Fischer", "Garcia",
    "Hoffmann", "Ito", "Jensen", "Kowalski", "Lopez", "Martin", "Nakamura",
    "Okafor", "Petrov", "Quintero", "Rossi", "Silva", "Tanaka", "Ueda",
    "Varga", "Wagner", "Xu", "Yilmaz", "Zhang",
)

LOREM_WORDS = (
    "lorem", "ipsum", "dolor", "sit", "amet", "consectetur", "adipiscing",
    "elit", "sed", "do", "eiusmod", "tempor", "incididunt", "ut", "labore",
    "et", "dolore", "magna", "aliqua", "enim", "ad", "minim", "veniam",
    "quis", "nostrud", "exercitation", "ullamco", "laboris", "nisi",
    "aliquip", "ex", "ea", "commodo", "consequat",
)


class RandomGenerators:
    """Random value generators exposed as ``tools.random``.

    Example:
        >>> gen = RandomGenerators(seed=7)
        >>> gen.array(3, gen.first_name)
        ['Maya', 'Ben', 'Rosa']
    """

    __slots__ = ("_rng",)

    def __init__(self, seed: Optional[int] = None) -> None:
        object.__setattr__(self, "_rng", Random(seed))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("tools.random is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("tools.random is read-only")

    def uuid(self) -> str:
        """Generates a random UUID (version 4)."""
        return str(_uuid.UUID(int=self._rng.getrandbits(128), version=4))

    def integer(self, min: int = -10_000, max: int = 10_000) -> int:
        """Generates a random integer between min and max, inclusive."""
        return self._rng.randint(min, max)

    def sequence(self, length: int) -> list[int]:
        """Generates the integers from 0 to length - 1."""
        return list(range(length))

    def decimal(self, min: float = -10_000, max: float = 10_000) -> str:
        """Generates a random decimal between min and max, with two digits."""
        return f"{self._rng.uniform(min, max):.2f}"

    def lorem(self, word_count: int = 5) -> str:
        """Generates a string of lorem ipsum words."""
        return " ".join(self._rng.choice(LOREM_WORDS) for _ in range(word_count))

    def first_name(self) -> str:
        """Generates a random first name."""
        return self._rng.choice(FIRST_NAMES)

    def last_name(self) -> str:
        """Generates a random last name."""
        return self._rng.choice(LAST_NAMES)

    def full_name(self) -> str:
        """Generates a random full name."""
        return f"{self.first_name()} {self.last_name()}"

    def email(self) -> str:
        """Generates a random email address."""
        letters = "abcdefghijklmnopqrstuvwxyz"
        local = "".join(self._rng.choice(letters) for _ in range(self.integer(5, 10)))
        return f"{local}{self.integer(0, 999)}@email.com"

    def date(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> datetime:
        """Generates a random UTC datetime between start (default 1970-01-01) and end (default now)."""
        start = start or datetime(1970, 1, 1, tzinfo=timezone.utc)
        end = end or datetime.now(timezone.utc)
        return start + (end - start) * self._rng.random()

    def url(self) -> str:
        """Generates a random URL."""
        return f"https://www.{self.lorem(1)}.com"

    def image_url(self) -> str:
        """Generates a random image URL."""
        return f"https://picsum.photos/id/{self.integer(0, 99)}/200/200"

    def array(self, length: int, generator: Callable[[], T]) -> list[T]:
        """Generates a list by calling generator length times."""
        return [generator() for _ in range(length)]


async def wait(ms: float) -> None:
    """Pauses the playground for ms milliseconds."""
    await asyncio.sleep(ms / 1000)


@dataclass(frozen=True)
class Toolkit:
    """The object bound as ``tools`` in every playground file."""

    random: RandomGenerators
    wait: Callable[[float], Awaitable[None]]

    @classmethod
    def create(cls, seed: Optional[int] = None) -> Toolkit:
        return cls(random=RandomGenerators(seed), wait=wait)


def _public_methods(cls: type) -> list[tuple[str, Any]]:
    return [
        (name, member)
        for name, member in inspect.getmembers(cls, inspect.isfunction)
        if not name.startswith("_")
    ]


def render_toolkit_stub() -> str:
    """Render the read-only ``__internal__`` reference file for the toolkit.

    The stub is derived from the public API so it never drifts from it.
    """
    lines = [
        '"""',
        "Playground toolkit reference (read-only).",
        "",
        "Every playground file can use these helpers through `tools`:",
        "",
        "    name = tools.random.full_name()",
        "    await tools.wait(250)",
        '"""',
        "",
        "",
        "class random:",
    ]
    for name, fn in _public_methods(RandomGenerators):
        full = inspect.signature(fn, eval_str=True)
        signature = full.replace(parameters=list(full.parameters.values())[1:])
        doc = inspect.getdoc(fn) or ""
        lines.append(f"    def {name}{signature}:")
        lines.append(f'        """{doc}"""')
        lines.append("")
    lines.append("")
    lines.append(f"async def wait{inspect.signature(wait, eval_str=True)}:")
    lines.append(f'    """{inspect.getdoc(wait)}"""')
    return "\n".join(lines) + "\n"
