"""Block Partitioner: Fixed-size contiguous slices of the pool for Learn mode."""

from typing import Dict, List, Sequence, Tuple

MASTERY_THRESHOLD = 3


def partition(pool: Sequence, block_size: int) -> List[list]:
    """Split ``pool`` into consecutive blocks of ``block_size``, in pool order."""
    if isinstance(block_size, bool) or not isinstance(block_size, int) or block_size < 1:
        raise ValueError(f"block_size must be a positive integer, got {block_size!r}")
    items = list(pool)
    return [items[i:i + block_size] for i in range(0, len(items), block_size)]


def mastery_ratio(block: Sequence, learn_progress: Dict[int, dict],
                  threshold: int = MASTERY_THRESHOLD) -> Tuple[int, int]:
    """Return (mastered, block length) where mastered counts streak >= threshold."""
    mastered = sum(
        1 for q in block
        if learn_progress.get(q.id, {}).get("streak", 0) >= threshold
    )
    return mastered, len(block)


def block_label(index: int, block: Sequence, block_size: int) -> str:
    start = index * block_size + 1
    return f"Block {index + 1}: {start}-{start + len(block) - 1}"
