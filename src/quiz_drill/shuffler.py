"""Shuffler: Unbiased reordering of questions and of their answer options."""

import random
from typing import List, Sequence

from .question_pool import Question


def permutation(n: int, rng=None) -> List[int]:
    """Return a uniformly random ordering of range(n) (Fisher-Yates).

    ``rng`` may be any object exposing ``randrange``; a seeded
    ``random.Random`` gives reproducible runs.
    """
    randrange = (rng or random).randrange
    perm = list(range(n))
    for i in range(n - 1, 0, -1):
        j = randrange(i + 1)
        perm[i], perm[j] = perm[j], perm[i]
    return perm


def shuffle_sequence(items: Sequence, rng=None) -> list:
    """Return a shuffled copy of ``items``; the input is left untouched."""
    return [items[i] for i in permutation(len(items), rng)]


def shuffle_options(question: Question, rng=None) -> Question:
    """Return a copy of ``question`` with options permuted and the key remapped.

    Position ``k`` of the new option list holds ``options[perm[k]]``, so the
    option that used to sit at index ``i`` is now at ``perm.index(i)``.
    """
    if not question.options:
        raise ValueError(f"Question {question.id} has no options to shuffle.")
    perm = permutation(len(question.options), rng)
    options = [question.options[i] for i in perm]
    return question.with_options(options, question.key.remap(perm))
