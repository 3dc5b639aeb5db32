"""
Pair generation for all-pairs batch matching.

Key Design Decisions:
- Pairs are unordered: (A, B) and (B, A) are the same pair
- Self-pairs are excluded: (A, A) is never generated
- Actors repeated in the snapshot (same id) are skipped after the first
- An optional max_pairs cap samples pairs reproducibly given a seed
- Pairs are produced in chunks that a worker pool processes independently
"""

import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np

from ..schema import Actor

logger = logging.getLogger(__name__)


class PairGenerator:
    """
    Generator of distinct, unordered actor pairs.

    Attributes:
        max_pairs: Cap on the number of pairs (None for every pair)
        random_state: Numpy RandomState used when sampling under the cap
    """

    def __init__(self, max_pairs: Optional[int] = None, random_seed: Optional[int] = None):
        """
        Initialize the pair generator.

        Args:
            max_pairs: Maximum number of pairs to generate
            random_seed: Random seed for reproducible sampling
        """
        if max_pairs is not None and max_pairs < 1:
            raise ValueError(f"max_pairs must be >= 1, got {max_pairs}")
        self.max_pairs = max_pairs
        self.random_state = np.random.RandomState(random_seed)

    @staticmethod
    def unique_actors(actors: List[Actor]) -> Tuple[List[Actor], int]:
        """
        Drop actors whose id was already seen.

        Returns:
            Tuple of (unique actors in input order, number of duplicates skipped)
        """
        seen = set()
        unique = []
        for actor in actors:
            if actor.id in seen:
                continue
            seen.add(actor.id)
            unique.append(actor)

        duplicates = len(actors) - len(unique)
        if duplicates:
            logger.warning(f"Skipped {duplicates} duplicate actor ids in snapshot")
        return unique, duplicates

    def generate_pairs(self, n_actors: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Generate index pairs with indices_a[i] < indices_b[i].

        Args:
            n_actors: Number of actors

        Returns:
            Tuple of (indices_a, indices_b) arrays
        """
        max_possible = n_actors * (n_actors - 1) // 2
        target_pairs = max_possible if self.max_pairs is None else min(self.max_pairs, max_possible)
        logger.info(f"Generating {target_pairs} of {max_possible} possible pairs from {n_actors} actors")

        if target_pairs >= max_possible * 0.5:
            return self._generate_by_enumeration(n_actors, target_pairs)
        return self._generate_by_sampling(n_actors, target_pairs)

    def _generate_by_enumeration(self, n_actors: int, target_pairs: int) -> Tuple[np.ndarray, np.ndarray]:
        """Enumerate the upper triangle, sampling down when capped."""
        indices_a, indices_b = np.triu_indices(n_actors, k=1)

        if target_pairs < len(indices_a):
            sample_idx = np.sort(self.random_state.choice(len(indices_a), size=target_pairs, replace=False))
            indices_a = indices_a[sample_idx]
            indices_b = indices_b[sample_idx]

        return indices_a, indices_b

    def _generate_by_sampling(self, n_actors: int, target_pairs: int) -> Tuple[np.ndarray, np.ndarray]:
        """Rejection-sample distinct pairs; efficient for small fractions."""
        pairs_set = set()
        batch_size = min(target_pairs * 2, 1000000)

        while len(pairs_set) < target_pairs:
            a = self.random_state.randint(0, n_actors, size=batch_size)
            b = self.random_state.randint(0, n_actors, size=batch_size)
            for i in range(batch_size):
                if a[i] != b[i]:
                    pairs_set.add((min(a[i], b[i]), max(a[i], b[i])))
                    if len(pairs_set) >= target_pairs:
                        break

        pairs_list = sorted(pairs_set)
        indices_a = np.array([p[0] for p in pairs_list], dtype=int)
        indices_b = np.array([p[1] for p in pairs_list], dtype=int)
        return indices_a, indices_b

    @staticmethod
    def iter_chunks(
        actors: List[Actor],
        indices_a: np.ndarray,
        indices_b: np.ndarray,
        chunk_size: int
    ) -> Iterator[List[Tuple[Actor, Actor]]]:
        """
        Yield actor pairs in chunks.

        Args:
            actors: Deduplicated actors
            indices_a: First actor indices from generate_pairs
            indices_b: Second actor indices from generate_pairs
            chunk_size: Pairs per chunk

        Yields:
            Lists of (actor_a, actor_b) pairs
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        for start in range(0, len(indices_a), chunk_size):
            stop = start + chunk_size
            yield [
                (actors[i], actors[j])
                for i, j in zip(indices_a[start:stop], indices_b[start:stop])
            ]
