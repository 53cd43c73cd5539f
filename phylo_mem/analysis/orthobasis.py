"""
Phylogenetic eigenvector maps.

Builds the orthonormal basis of Moran's eigenvectors from a proximity matrix.
Each eigenvector is a pattern of variation across tips at a characteristic
phylogenetic scale; its eigenvalue is reported as the Moran's I of the
pattern, positive for vectors that group close relatives together.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import linalg

from ..core.exceptions import InputValidationError, LengthMismatchError

logger = logging.getLogger(__name__)


@dataclass
class EigenvectorBasis:
    """
    A set of phylogenetic eigenvectors and their eigenvalues.

    Attributes:
        vectors (pandas.DataFrame): One row per tip, one column per eigenvector.
        values (numpy.ndarray): Signed eigenvalue of each column, in column order.
    """
    vectors: pd.DataFrame
    values: np.ndarray

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=float)
        if self.values.ndim != 1 or len(self.values) != self.vectors.shape[1]:
            raise LengthMismatchError(
                f"Basis has {self.vectors.shape[1]} columns but {self.values.size} eigenvalues"
            )

    @property
    def labels(self):
        return self.vectors.index

    @property
    def n_vectors(self):
        return self.vectors.shape[1]

    def subset(self, indices):
        """Returns a new basis restricted to the given column positions, in that order."""
        indices = list(indices)
        return EigenvectorBasis(self.vectors.iloc[:, indices].copy(), self.values[indices].copy())


def orthobasis(proximity, prefix='ME'):
    """
    Computes Moran's eigenvectors of a proximity matrix.

    The symmetrised proximity is projected onto the subspace orthogonal to the
    constant vector, so every eigenvector is centred, and then diagonalised.

    Args:
        proximity (pandas.DataFrame): Square proximity matrix indexed by tip label.
        prefix (str): Prefix of the eigenvector column labels.

    Returns:
        EigenvectorBasis: ``n - 1`` eigenvectors scaled to norm ``sqrt(n)``,
        sorted by decreasing eigenvalue.

    Raises:
        InputValidationError: If the proximity is not square, not labeled
            consistently, or has fewer than 3 tips.
    """
    if not isinstance(proximity, pd.DataFrame):
        raise InputValidationError("orthobasis requires a labeled proximity DataFrame")
    if proximity.shape[0] != proximity.shape[1] or not proximity.index.equals(proximity.columns):
        raise InputValidationError("Proximity rows and columns must carry the same tip labels in the same order")
    n = proximity.shape[0]
    if n < 3:
        raise InputValidationError(f"At least 3 tips are needed to build a basis, got {n}")

    w = proximity.to_numpy(dtype=float)
    w = (w + w.T) / 2.0

    # Orthonormal complement of the constant vector.
    seed = np.column_stack([np.ones(n), np.eye(n)[:, :n - 1]])
    q, _ = linalg.qr(seed)
    complement = q[:, 1:]

    eigenvalues, eigenvectors = linalg.eigh(complement.T @ w @ complement)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = eigenvalues[order]
    vectors = complement @ eigenvectors[:, order] * np.sqrt(n)

    moran_values = eigenvalues * n / w.sum()
    columns = [f"{prefix}{i + 1}" for i in range(n - 1)]
    logger.debug("Built %d eigenvectors, %d with positive autocorrelation",
                 n - 1, int(np.sum(moran_values > 0)))
    return EigenvectorBasis(pd.DataFrame(vectors, index=proximity.index, columns=columns), moran_values)
