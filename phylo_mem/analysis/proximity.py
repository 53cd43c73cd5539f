"""
Phylogenetic proximities between tips.

All methods look at the path joining two tips through their most recent
common ancestor (MRCA):

- 'Abouheif': 1 / product of the number of direct descendants of each internal node on the path
- 'sumDD': 1 / sum of the number of direct descendants of each internal node on the path
- 'nNodes': 1 / number of internal nodes on the path
- 'patristic': 1 / sum of branch lengths on the path
"""

import logging

import numpy as np
import pandas as pd

from ..core.exceptions import InputValidationError, NumericalError

logger = logging.getLogger(__name__)

PROXIMITY_METHODS = ('Abouheif', 'sumDD', 'nNodes', 'patristic')
NORMALIZATIONS = ('row', 'col', 'none')


def _tip_labels(tree):
    leaves = tree.get_leaves()
    labels = [leaf.name for leaf in leaves]
    if len(labels) < 3:
        raise InputValidationError(f"Tree must have at least 3 tips, got {len(labels)}")
    if any(not label for label in labels):
        raise InputValidationError("All tips of the tree must be named")
    if len(set(labels)) != len(labels):
        raise InputValidationError("Tip names of the tree must be unique")
    return leaves, labels


def _path_nodes(ancestors_a, ancestors_b):
    """Internal nodes on the path between two tips, MRCA included."""
    on_b = {id(node): position for position, node in enumerate(ancestors_b)}
    for position, node in enumerate(ancestors_a):
        if id(node) in on_b:
            return ancestors_a[:position + 1] + ancestors_b[:on_b[id(node)]]
    raise InputValidationError("Tips do not share a common ancestor")


def _pair_proximity(tree, leaf_a, leaf_b, path, method):
    if method == 'Abouheif':
        return 1.0 / np.prod([len(node.children) for node in path], dtype=float)
    if method == 'sumDD':
        return 1.0 / sum(len(node.children) for node in path)
    if method == 'nNodes':
        return 1.0 / len(path)
    distance = tree.get_distance(leaf_a, leaf_b)
    if distance <= 0:
        raise NumericalError(f"Patristic distance between '{leaf_a.name}' and '{leaf_b.name}' is not positive")
    return 1.0 / distance


def tip_proximity(tree, method='Abouheif', normalize='row', symmetric=True):
    """
    Computes a proximity matrix between the tips of a tree.

    Args:
        tree (ete3.Tree): A tree with uniquely named tips.
        method (str): One of 'Abouheif', 'sumDD', 'nNodes', 'patristic'.
        normalize (str): 'row' scales rows to sum to one, 'col' scales columns,
                         'none' leaves the raw proximities.
        symmetric (bool): Average the normalised matrix with its transpose.

    Returns:
        pandas.DataFrame: Proximities with a zero diagonal, indexed by tip name
        in tree leaf order.

    Raises:
        ValueError: If ``method`` or ``normalize`` is unknown.
        InputValidationError: If the tree has fewer than 3 tips or bad tip names.
    """
    if method not in PROXIMITY_METHODS:
        raise ValueError(f"Unknown proximity method '{method}'. Choose one of {PROXIMITY_METHODS}")
    if normalize not in NORMALIZATIONS:
        raise ValueError(f"Unknown normalization '{normalize}'. Choose one of {NORMALIZATIONS}")

    leaves, labels = _tip_labels(tree)
    ancestors = [leaf.get_ancestors() for leaf in leaves]
    n = len(leaves)

    prox = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1, n):
            path = _path_nodes(ancestors[i], ancestors[j])
            prox[i, j] = prox[j, i] = _pair_proximity(tree, leaves[i], leaves[j], path, method)

    if normalize == 'row':
        prox = prox / prox.sum(axis=1, keepdims=True)
    elif normalize == 'col':
        prox = prox / prox.sum(axis=0, keepdims=True)
    if symmetric:
        prox = (prox + prox.T) / 2.0

    logger.debug("Computed %s proximity for %d tips (normalize=%s, symmetric=%s)",
                 method, n, normalize, symmetric)
    return pd.DataFrame(prox, index=labels, columns=labels)


def abouheif_proximity(tree, normalize='row', symmetric=True):
    """Abouheif proximity between tips; see :func:`tip_proximity`."""
    return tip_proximity(tree, method='Abouheif', normalize=normalize, symmetric=symmetric)
