"""Sparse slot maps shared by structure and value passes.

A :class:`SparsityPattern` is declared once, block by block. Each block
maps its ``(row, col)`` coordinates to stable slots in one flat nonzero
array. The solver queries the structure (``rows``, ``cols``) and every
value pass fills the same slots through :meth:`SparsityPattern.accumulate`,
so structure and values cannot drift apart.
"""

from __future__ import annotations

import numpy as np

from otnet.exceptions import SparsityMismatchError


class SparsityPattern:
    """Fixed map from matrix coordinates to nonzero slots.

    Attributes:
        shape: Matrix shape (n_rows, n_cols)
        lower_triangular: Only entries with row >= col may be declared
        exclusive: Every coordinate may be declared by exactly one term

    Example:
        >>> pattern = SparsityPattern((2, 2), lower_triangular=True, exclusive=False)
        >>> pattern.declare("diag", [0, 1], [0, 1])
        >>> pattern.declare("extra", [1], [1])
        >>> pattern.freeze().nnz
        2
        >>> values = pattern.new_values()
        >>> pattern.accumulate(values, "diag", [1.0, 2.0])
        >>> pattern.accumulate(values, "extra", [0.5])
        >>> values
        array([1. , 2.5])
    """

    def __init__(
        self,
        shape: tuple[int, int],
        *,
        lower_triangular: bool = False,
        exclusive: bool = True,
    ) -> None:
        self.shape = (int(shape[0]), int(shape[1]))
        self.lower_triangular = lower_triangular
        self.exclusive = exclusive
        self._index: dict[tuple[int, int], int] = {}
        self._blocks: dict[str, np.ndarray] = {}
        self._rows: list[int] = []
        self._cols: list[int] = []
        self._frozen = False

    def declare(self, block: str, rows: np.ndarray | list[int], cols: np.ndarray | list[int]) -> None:
        """Register a named block of structural nonzeros.

        Args:
            block: Unique block name
            rows: Row index of every entry
            cols: Column index of every entry (same length as ``rows``)

        Raises:
            SparsityMismatchError: On a frozen pattern, a duplicate block
                name, out-of-range or upper-triangular coordinates, or a
                coordinate declared twice in an exclusive pattern
        """
        if self._frozen:
            raise SparsityMismatchError(f"Cannot declare block '{block}' on a frozen pattern")
        if block in self._blocks:
            raise SparsityMismatchError(f"Block '{block}' already declared")

        rows = np.asarray(rows, dtype=int).reshape(-1)
        cols = np.asarray(cols, dtype=int).reshape(-1)
        if rows.shape != cols.shape:
            raise SparsityMismatchError(
                f"Block '{block}': {rows.size} rows but {cols.size} columns"
            )
        if rows.size and (
            rows.min() < 0
            or cols.min() < 0
            or rows.max() >= self.shape[0]
            or cols.max() >= self.shape[1]
        ):
            raise SparsityMismatchError(f"Block '{block}' has entries outside shape {self.shape}")
        if self.lower_triangular and np.any(rows < cols):
            raise SparsityMismatchError(f"Block '{block}' has entries above the diagonal")

        slots = np.empty(rows.size, dtype=int)
        for k, key in enumerate(zip(rows.tolist(), cols.tolist())):
            slot = self._index.get(key)
            if slot is None:
                slot = len(self._rows)
                self._index[key] = slot
                self._rows.append(key[0])
                self._cols.append(key[1])
            elif self.exclusive:
                raise SparsityMismatchError(
                    f"Block '{block}' redeclares entry {key} of an exclusive pattern"
                )
            slots[k] = slot
        self._blocks[block] = slots

    def freeze(self) -> SparsityPattern:
        """Lock the pattern; no further blocks may be declared."""
        if not self._frozen:
            self._rows_arr = np.array(self._rows, dtype=int)
            self._cols_arr = np.array(self._cols, dtype=int)
            self._rows_arr.setflags(write=False)
            self._cols_arr.setflags(write=False)
            self._frozen = True
        return self

    def _require_frozen(self) -> None:
        if not self._frozen:
            raise SparsityMismatchError("Pattern must be frozen before it is queried")

    @property
    def nnz(self) -> int:
        """Number of structural nonzeros."""
        return len(self._rows)

    @property
    def rows(self) -> np.ndarray:
        self._require_frozen()
        return self._rows_arr

    @property
    def cols(self) -> np.ndarray:
        self._require_frozen()
        return self._cols_arr

    @property
    def blocks(self) -> list[str]:
        """Declared block names in declaration order."""
        return list(self._blocks)

    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        """Row and column indices of every slot, in slot order."""
        return self.rows, self.cols

    def slots(self, block: str) -> np.ndarray:
        """Slot index of every entry of a declared block."""
        try:
            return self._blocks[block]
        except KeyError as exc:
            raise SparsityMismatchError(f"Unknown block '{block}'") from exc

    def new_values(self) -> np.ndarray:
        """Zeroed value vector aligned with the slots."""
        self._require_frozen()
        return np.zeros(self.nnz)

    def accumulate(self, values: np.ndarray, block: str, contributions: np.ndarray | list[float]) -> None:
        """Add a block's contributions into its slots.

        Contributions must come in the order the block was declared.
        Slots shared by several entries receive the sum.

        Raises:
            SparsityMismatchError: If the contribution count differs from
                the declared entry count
        """
        slots = self.slots(block)
        contributions = np.asarray(contributions, dtype=float).reshape(-1)
        if contributions.size != slots.size:
            raise SparsityMismatchError(
                f"Block '{block}' declared {slots.size} entries but received {contributions.size} values"
            )
        np.add.at(values, slots, contributions)

    def to_dense(self, values: np.ndarray, symmetric: bool = False) -> np.ndarray:
        """Dense matrix from a value vector.

        Args:
            values: Slot values
            symmetric: Mirror the strict lower triangle into the upper one

        Returns:
            Dense (n_rows, n_cols) array
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self.nnz,):
            raise SparsityMismatchError(
                f"Value vector has {values.size} entries, pattern has {self.nnz}"
            )
        dense = np.zeros(self.shape)
        np.add.at(dense, (self.rows, self.cols), values)
        if symmetric:
            off = self.rows != self.cols
            np.add.at(dense, (self.cols[off], self.rows[off]), values[off])
        return dense

    def __repr__(self) -> str:
        """String representation."""
        kind = "lower" if self.lower_triangular else "general"
        return (
            f"SparsityPattern(shape={self.shape}, nnz={self.nnz}, "
            f"blocks={len(self._blocks)}, {kind})"
        )
