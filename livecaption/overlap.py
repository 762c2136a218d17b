"""Merging overlapping token sequences and formatting timestamps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class TokenData:
    """A decoded token: its vocabulary id, probability and text."""

    id: int
    p: float = 0.0
    text: str = ""


def find_start_of_overlap(
    seq1: Sequence[TokenData], seq2: Sequence[TokenData]
) -> Optional[tuple[int, int]]:
    """Find where a two-token overlap between ``seq1`` and ``seq2`` begins.

    The search runs over the second half of ``seq1``, from the end backwards,
    and allows a single skipped token on either side. Returns the pair of
    indices of the first overlapping tokens, or ``None`` if none is found.
    """
    if len(seq1) < 2 or len(seq2) < 2:
        return None
    for i in range(len(seq1) - 2, len(seq1) // 2 - 1, -1):
        for j in range(len(seq2) - 1):
            if seq1[i].id != seq2[j].id:
                continue
            if seq1[i + 1].id == seq2[j + 1].id:
                return i, j
            if i + 2 < len(seq1) and seq1[i + 2].id == seq2[j + 1].id:
                return i, j
            if j + 2 < len(seq2) and seq1[i + 1].id == seq2[j + 2].id:
                return i, j
    return None


def reconstruct_sentence(
    seq1: Sequence[TokenData], seq2: Sequence[TokenData]
) -> list[TokenData]:
    """Join two token sequences, merging the part they share.

    Without an overlap the sequences are concatenated, dropping a repeated
    token at the junction where one is evident.
    """
    overlap = find_start_of_overlap(seq1, seq2)

    if overlap is None:
        if not seq1:
            return list(seq2)
        if not seq2:
            return list(seq1)
        if seq1[-1].id == seq2[0].id:
            return [*seq1[:-1], *seq2]
        if len(seq2) > 1 and seq1[-1].id == seq2[1].id:
            return [*seq1[:-1], *seq2[1:]]
        if len(seq1) > 1 and seq1[-2].id == seq2[0].id:
            return [*seq1[:-2], *seq2]
        return [*seq1, *seq2]

    first, second = overlap
    length = 0
    while (
        first + length < len(seq1)
        and second + length < len(seq2)
        and seq1[first + length].id == seq2[second + length].id
    ):
        length += 1

    return [
        *seq1[:first],
        *seq1[first : first + length],
        *seq2[second + length :],
    ]


def to_timestamp(t_ms_offset: int) -> str:
    """Format a millisecond offset as ``MM:SS.sss``."""
    seconds, msec = divmod(int(t_ms_offset), 1000)
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes:02d}:{seconds:02d}.{msec:03d}"