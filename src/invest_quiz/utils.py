import json
import random

from datetime import datetime, timezone
from pathlib import Path
from typing import List, MutableSequence, Optional, TypeVar

T = TypeVar("T")


def fisher_yates_shuffle(
    items: MutableSequence[T], rng: Optional[random.Random] = None
) -> MutableSequence[T]:
    """Shuffle ``items`` in place with an unbiased Fisher-Yates pass.

    Returns the same sequence for call chaining.
    """
    rnd = rng or random
    for index in range(len(items) - 1, 0, -1):
        swap = rnd.randint(0, index)
        items[index], items[swap] = items[swap], items[index]
    return items


def read_jsonl(path: Path) -> List[dict]:
    data: List[dict] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            data.append(json.loads(line))
    return data


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
