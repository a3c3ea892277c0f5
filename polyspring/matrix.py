"""Host-side tangent matrix storage and block-offset accessors."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import sparse

from polyspring.state import DIM, MechanicalState


class TripletMatrix:
    """
    Write-only scalar accumulator. Entries are kept as (row, col, value)
    triplets; duplicates are summed when the matrix is materialized.
    """

    def __init__(self, n_rows: int, n_cols: int):
        self.shape = (int(n_rows), int(n_cols))
        self._rows: list[int] = []
        self._cols: list[int] = []
        self._vals: list[float] = []

    def add(self, row: int, col: int, value: float) -> None:
        self._rows.append(int(row))
        self._cols.append(int(col))
        self._vals.append(float(value))

    def add_block(self, row: int, col: int, block: np.ndarray) -> None:
        block = np.asarray(block, dtype=float)
        n_r, n_c = block.shape
        for i in range(n_r):
            for j in range(n_c):
                self.add(row + i, col + j, block[i, j])

    def add_diagonal(self, row: int, col: int, diag: np.ndarray) -> None:
        for i, value in enumerate(np.asarray(diag, dtype=float)):
            self.add(row + i, col + i, value)

    def n_entries(self) -> int:
        return len(self._vals)

    def clear(self) -> None:
        self._rows.clear()
        self._cols.clear()
        self._vals.clear()

    def tocsr(self) -> sparse.csr_matrix:
        m = sparse.coo_matrix(
            (
                np.asarray(self._vals, dtype=float),
                (np.asarray(self._rows, dtype=int), np.asarray(self._cols, dtype=int)),
            ),
            shape=self.shape,
        )
        return m.tocsr()

    def toarray(self) -> np.ndarray:
        return self.tocsr().toarray()


@dataclass
class MatrixRef:
    matrix: TripletMatrix
    offset: int


@dataclass
class InteractionMatrixRef:
    matrix: TripletMatrix
    off_row: int
    off_col: int


class BlockMatrixAccessor:
    """
    Lays the registered states out contiguously in one global matrix
    (DIM rows/cols per point, in registration order). States that were not
    registered have no matrix region and yield None.
    """

    def __init__(self, states: list[MechanicalState]):
        self.states = list(states)
        self._offsets: dict[int, int] = {}
        offset = 0
        for s in self.states:
            self._offsets[id(s)] = offset
            offset += DIM * s.size()
        self.size = offset
        self.matrix = TripletMatrix(offset, offset)

    def offset_of(self, state: MechanicalState) -> int | None:
        return self._offsets.get(id(state), None)

    def get_matrix(self, state: MechanicalState) -> MatrixRef | None:
        offset = self.offset_of(state)
        if offset is None:
            return None
        return MatrixRef(matrix=self.matrix, offset=offset)

    def get_interaction_matrix(
        self,
        state1: MechanicalState,
        state2: MechanicalState,
    ) -> InteractionMatrixRef | None:
        off_row = self.offset_of(state1)
        off_col = self.offset_of(state2)
        if off_row is None or off_col is None:
            return None
        return InteractionMatrixRef(matrix=self.matrix, off_row=off_row, off_col=off_col)

    def tocsr(self) -> sparse.csr_matrix:
        return self.matrix.tocsr()

    def toarray(self) -> np.ndarray:
        return self.matrix.toarray()
