"""Adaptive chunk sizing for resumable uploads."""

from __future__ import annotations

from stowctl.uploaders.constants import DEFAULT_CHUNK_SIZE, MAX_CHUNK_SIZE


class ChunkSizer:
    """Doubles the chunk size after each acknowledged chunk, up to a ceiling.

    Any failed or interrupted call drops back to the base size.
    """

    def __init__(
        self,
        base_chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_chunk_size: int = MAX_CHUNK_SIZE,
    ) -> None:
        if base_chunk_size <= 0:
            raise ValueError(f"base_chunk_size must be positive, got {base_chunk_size}")
        if max_chunk_size < base_chunk_size:
            raise ValueError("max_chunk_size must be at least base_chunk_size")
        self.base_chunk_size = base_chunk_size
        self.max_chunk_size = max_chunk_size
        self.multiplier = 1

    @property
    def chunk_size(self) -> int:
        """Size of the next chunk to request."""
        return min(self.base_chunk_size * self.multiplier, self.max_chunk_size)

    def grow(self) -> None:
        if self.base_chunk_size * self.multiplier < self.max_chunk_size:
            self.multiplier *= 2

    def reset(self) -> None:
        self.multiplier = 1

    def __repr__(self) -> str:
        return f"ChunkSizer(chunk_size={self.chunk_size}, multiplier={self.multiplier})"
