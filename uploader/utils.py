from typing import Iterator, Sequence, TypeVar

from uploader.config import LAMPORTS_PER_SOL

# python insantiates generics separate to function definition
T = TypeVar("T")


def chunks(ls: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield successive slices of `ls` of at most `size` items"""
    for i in range(0, len(ls), size):
        yield ls[i : i + size]


def lamports_to_sol_ceil(lamports: int) -> int:
    """Whole SOL needed to cover `lamports`, rounded up"""
    return (lamports + LAMPORTS_PER_SOL - 1) // LAMPORTS_PER_SOL
