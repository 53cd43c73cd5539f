"""
Selection of phylogenetic eigenvectors by minimisation of residual
autocorrelation (MIR).

Starting from a trait (or residual) vector with significant positive
phylogenetic autocorrelation, the eigenvector whose removal leaves the
residual autocorrelation closest to zero is regressed out, the residual is
re-tested, and the procedure repeats until the residual is no longer
significantly autocorrelated. Only eigenvectors with a positive eigenvalue
(positive autocorrelation) are candidates.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from ..analysis.orthobasis import EigenvectorBasis
from ..core.config import get_option
from ..core.exceptions import (
    IdentifierMismatchError,
    LengthMismatchError,
    MissingValuesError,
    NumericalError,
    UnlabeledInputError,
)
from .moran_test import MoranTestResult, moran_statistic, phylo_moran_test
from .regression import ols_residuals

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ['variable', 'order', 'eigenvalue', 'moran_resid', 'p_value']


@dataclass
class SelectionResult:
    """
    Outcome of a MIR selection.

    Attributes:
        global_test (MoranTestResult): Test of the input vector before any removal.
        all_vectors (EigenvectorBasis, optional): The complete basis, when requested.
        selected (EigenvectorBasis, optional): Sub-basis of the selected eigenvectors
            and their eigenvalues, in selection order.
        summary (pandas.DataFrame, optional): One row per selection step.
        stop_reason (str): 'no_positive_eigenvectors', 'not_significant',
                           'converged' or 'exhausted'.
    """
    global_test: MoranTestResult
    all_vectors: Optional[EigenvectorBasis] = None
    selected: Optional[EigenvectorBasis] = None
    summary: Optional[pd.DataFrame] = None
    stop_reason: str = 'not_significant'

    @property
    def n_selected(self):
        return 0 if self.summary is None else len(self.summary)


def _as_series(values):
    if isinstance(values, pd.Series):
        return values.astype(float)
    if isinstance(values, Mapping):
        return pd.Series(values, dtype=float)
    return None


def validate_inputs(values, basis, proximity):
    """
    Checks the preconditions of a selection and aligns everything to the basis.

    Args:
        values: Named trait vector (pandas.Series or mapping of tip label to value).
        basis (EigenvectorBasis): Eigenvectors indexed by tip label.
        proximity (pandas.DataFrame or numpy.ndarray): Proximity matrix. An array
            is taken to be in basis row order already.

    Returns:
        tuple: ``(values, proximity)`` as a float Series and a float array, both
        in basis row order.

    Raises:
        MissingValuesError: If ``values`` contains missing entries.
        LengthMismatchError: If sizes of values, basis and proximity disagree.
        UnlabeledInputError: If ``values`` carries no tip labels.
        IdentifierMismatchError: If tip labels do not match between inputs.
    """
    series = _as_series(values)
    raw = series.to_numpy() if series is not None else np.asarray(values, dtype=float)
    labels = basis.labels

    if np.isnan(raw).any():
        raise MissingValuesError("NA entries in the trait vector")
    if len(raw) != len(labels):
        raise LengthMismatchError(
            f"Length of the trait vector ({len(raw)}) must match the basis rows ({len(labels)})"
        )
    if series is None:
        raise UnlabeledInputError("The trait vector must be named with tip labels")
    if series.index.has_duplicates:
        raise IdentifierMismatchError("Identifiers of the trait vector must be unique")
    if not series.index.isin(labels).all():
        missing = list(series.index[~series.index.isin(labels)])[:5]
        raise IdentifierMismatchError(f"Identifiers of the trait vector do not match basis rows, e.g. {missing}")
    series = series.reindex(labels)

    if isinstance(proximity, pd.DataFrame):
        if not (set(proximity.index) == set(labels) and set(proximity.columns) == set(labels)):
            raise IdentifierMismatchError("Identifiers of the proximity matrix do not match basis rows")
        matrix = proximity.loc[labels, labels].to_numpy(dtype=float)
    else:
        matrix = np.asarray(proximity, dtype=float)
        if matrix.shape != (len(labels), len(labels)):
            raise LengthMismatchError(
                f"Proximity of shape {matrix.shape} does not match {len(labels)} basis rows"
            )
    return series, matrix


class MEMSelector:
    """
    Selects phylogenetic eigenvectors that remove residual positive autocorrelation.
    """
    def __init__(self, n_permutations=999, n_permutations_global=9999, alpha=0.05,
                 return_all_vectors=False, verbose=False, random_state=None,
                 statistic=moran_statistic, residuals=ols_residuals):
        """
        Initializes the MEMSelector.

        Args:
            n_permutations (int): Permutations for the test run after each selection step.
            n_permutations_global (int): Permutations for the global test.
            alpha (float): Significance threshold.
            return_all_vectors (bool): If True, the complete basis is kept in the result.
            verbose (bool): If True, the selection trace is logged at INFO level
                            instead of DEBUG.
            random_state (int, numpy.random.Generator, optional): Seed or stream.
                The global test and the selection loop use two independent child streams.
            statistic (callable): ``statistic(values, proximity) -> float``.
            residuals (callable): ``residuals(response, predictor) -> residual vector``.
        """
        self.n_permutations = n_permutations
        self.n_permutations_global = n_permutations_global
        self.alpha = alpha
        self.return_all_vectors = return_all_vectors
        self.verbose = verbose
        self.random_state = random_state
        self.statistic = statistic
        self.residuals = residuals
        logger.debug("MEMSelector initialized: n_permutations=%s, n_permutations_global=%s, alpha=%s",
                     n_permutations, n_permutations_global, alpha)

    @classmethod
    def from_config(cls, config, **kwargs):
        """Builds a selector from a DefaultConfig object or a configuration dict."""
        options = dict(
            n_permutations=get_option(config, 'n_permutations', 999),
            n_permutations_global=get_option(config, 'n_permutations_global', 9999),
            alpha=get_option(config, 'alpha', 0.05),
            return_all_vectors=get_option(config, 'return_all_vectors', False),
            verbose=get_option(config, 'verbose', False),
            random_state=get_option(config, 'random_seed'),
        )
        options.update(kwargs)
        return cls(**options)

    def _trace(self, msg, *args):
        logger.log(logging.INFO if self.verbose else logging.DEBUG, msg, *args)

    def select(self, values, basis, proximity):
        """
        Runs the MIR selection.

        Args:
            values: Named trait vector or model residuals (pandas.Series or mapping).
            basis (EigenvectorBasis): Phylogenetic eigenvectors with their eigenvalues.
            proximity (pandas.DataFrame or numpy.ndarray): Proximity matrix used by the tests.

        Returns:
            SelectionResult: The global test and, when the input was significantly
            autocorrelated, the selected eigenvectors and a per-step summary.

        Raises:
            InputValidationError: If a precondition is violated (see :func:`validate_inputs`).
        """
        x, prox = validate_inputs(values, basis, proximity)
        global_rng, loop_rng = np.random.default_rng(self.random_state).spawn(2)
        all_vectors = basis if self.return_all_vectors else None

        positive_idx = np.flatnonzero(basis.values > 0)
        if len(positive_idx) == 0:
            self._trace("No eigenvectors with positive phylogenetic autocorrelation found")
            no_signal = MoranTestResult(observed=np.nan, simulated=np.empty(0), p_value=1.0)
            return SelectionResult(no_signal, all_vectors, stop_reason='no_positive_eigenvectors')

        global_test = phylo_moran_test(x.to_numpy(), prox, n_permutations=self.n_permutations_global,
                                       random_state=global_rng, statistic=self.statistic)
        if global_test.p_value >= self.alpha:
            self._trace("No significant positive phylogenetic autocorrelation (p = %.4f)", global_test.p_value)
            return SelectionResult(global_test, all_vectors, stop_reason='not_significant')

        self._trace("Global test significant (p = %.4f). Starting MIR selection with %d ME variables.",
                    global_test.p_value, len(positive_idx))

        candidates = basis.vectors.iloc[:, positive_idx].to_numpy(dtype=float)
        current = x.to_numpy()
        selected, moran_resid, p_values = [], [], []
        p_value = global_test.p_value

        while p_value < self.alpha and len(selected) < len(positive_idx):
            best, best_score = self._best_candidate(current, candidates, prox, set(selected), positive_idx)
            self._trace("Selecting ME variable %d (original index: %d, residual statistic: %.4f)",
                        len(selected) + 1, positive_idx[best], best_score)

            current = np.asarray(self.residuals(current, candidates[:, best]), dtype=float)
            commit = phylo_moran_test(current, prox, n_permutations=self.n_permutations,
                                      random_state=loop_rng, statistic=self.statistic)
            p_value = commit.p_value

            selected.append(best)
            moran_resid.append(commit.observed)
            p_values.append(p_value)

        if p_value < self.alpha:
            stop_reason = 'exhausted'
            logger.warning("All %d positive eigenvectors were selected but residual autocorrelation "
                           "is still significant (p = %.4f)", len(positive_idx), p_value)
        else:
            stop_reason = 'converged'
            self._trace("Procedure stopped (p = %.4f >= alpha = %.2f)", p_value, self.alpha)

        original = positive_idx[selected]
        summary = pd.DataFrame({
            'variable': list(basis.vectors.columns[original]),
            'order': original,
            'eigenvalue': basis.values[original],
            'moran_resid': moran_resid,
            'p_value': p_values,
        }, columns=SUMMARY_COLUMNS, index=pd.RangeIndex(1, len(selected) + 1, name='step'))

        return SelectionResult(
            global_test=global_test,
            all_vectors=all_vectors,
            selected=basis.subset(original),
            summary=summary,
            stop_reason=stop_reason,
        )

    def _best_candidate(self, current, candidates, prox, excluded, positive_idx):
        """
        Scores every unselected candidate and returns ``(position, score)`` of the best.

        The best candidate leaves the residual statistic closest to zero; ties go
        to the lowest position because only a strictly smaller score replaces it.
        Candidates with a non-finite score are skipped.

        Raises:
            NumericalError: If no candidate has a finite score.
        """
        best, best_score = None, None
        for i in range(candidates.shape[1]):
            if i in excluded:
                continue
            resid = self.residuals(current, candidates[:, i])
            score = float(self.statistic(resid, prox))
            self._trace("  candidate %d: residual statistic %.4f", positive_idx[i], score)
            if not np.isfinite(score):
                continue
            if best is None or abs(score) < abs(best_score):
                best, best_score = i, score
        if best is None:
            raise NumericalError("No candidate eigenvector gives a finite residual statistic")
        return best, best_score


def phylo_mem_select(values, basis, proximity, **options):
    """
    Convenience wrapper: ``MEMSelector(**options).select(values, basis, proximity)``.
    """
    return MEMSelector(**options).select(values, basis, proximity)
