"""``{{userN}}`` placeholder names for example conversations."""

from __future__ import annotations

import random
from collections.abc import Sequence

EXAMPLE_NAMES = (
    "Alice", "Bashir", "Camila", "Dmitri", "Elena", "Farid", "Greta", "Hiro",
    "Ines", "Jonas", "Keiko", "Liam", "Maya", "Nadia", "Omar", "Priya",
    "Quentin", "Rosa", "Sven", "Tariq", "Uma", "Viktor", "Wen", "Ximena",
    "Yusuf", "Zara",
)

PLACEHOLDER_COUNT = 5


def sample_names(
    rng: random.Random, count: int = PLACEHOLDER_COUNT
) -> list[str]:
    return rng.sample(EXAMPLE_NAMES, min(count, len(EXAMPLE_NAMES)))


def fill_user_placeholders(text: str, names: Sequence[str]) -> str:
    """Replace ``{{user1}}``..``{{userN}}`` with *names* in order."""
    for index, name in enumerate(names, start=1):
        text = text.replace(f"{{{{user{index}}}}}", name)
    return text
