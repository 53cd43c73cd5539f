import logging

import pytest
import numpy as np
import pandas as pd

from phylo_mem.analysis.orthobasis import EigenvectorBasis, orthobasis
from phylo_mem.core.config import DefaultConfig
from phylo_mem.core.exceptions import (
    IdentifierMismatchError,
    LengthMismatchError,
    MissingValuesError,
    NumericalError,
    UnlabeledInputError,
)
from phylo_mem.methods import mem_select
from phylo_mem.methods.mem_select import MEMSelector, SelectionResult, phylo_mem_select
from phylo_mem.methods.moran_test import moran_statistic, phylo_moran_test
from phylo_mem.methods.regression import ols_residuals


def chain_structures(n):
    """Labeled chain proximity and its eigenvector basis."""
    labels = [f"t{i + 1}" for i in range(n)]
    prox = pd.DataFrame(np.eye(n, k=1) + np.eye(n, k=-1), index=labels, columns=labels)
    return prox, orthobasis(prox)


class CountingResiduals:
    """Regression provider that counts how often it is called."""
    def __init__(self):
        self.calls = 0

    def __call__(self, response, predictor):
        self.calls += 1
        return ols_residuals(response, predictor)


class TestInputValidation:
    """
    Tests that every precondition raises its own error before any computation.
    """
    def setup_method(self, method):
        self.prox, self.basis = chain_structures(10)
        self.values = pd.Series(np.linspace(0, 1, 10), index=self.basis.labels)

    def test_missing_values(self):
        values = self.values.copy()
        values.iloc[3] = np.nan
        with pytest.raises(MissingValuesError, match="NA"):
            phylo_mem_select(values, self.basis, self.prox)

    def test_length_mismatch(self):
        with pytest.raises(LengthMismatchError, match="basis rows"):
            phylo_mem_select(self.values.iloc[:-1], self.basis, self.prox)

    def test_unlabeled_values(self):
        with pytest.raises(UnlabeledInputError, match="named"):
            phylo_mem_select(self.values.to_numpy(), self.basis, self.prox)

    def test_unknown_identifiers(self):
        values = self.values.rename(lambda label: label.upper())
        with pytest.raises(IdentifierMismatchError, match="basis rows"):
            phylo_mem_select(values, self.basis, self.prox)

    def test_duplicated_identifiers(self):
        values = self.values.copy()
        values.index = ['t1'] * 10
        with pytest.raises(IdentifierMismatchError):
            phylo_mem_select(values, self.basis, self.prox)

    def test_proximity_identifiers(self):
        prox = self.prox.rename(index=lambda label: label + "_x", columns=lambda label: label + "_x")
        with pytest.raises(IdentifierMismatchError, match="proximity"):
            phylo_mem_select(self.values, self.basis, prox)

    def test_proximity_shape(self):
        with pytest.raises(LengthMismatchError):
            phylo_mem_select(self.values, self.basis, np.eye(9))

    def test_validation_happens_before_any_regression(self):
        residuals = CountingResiduals()
        values = self.values.copy()
        values.iloc[0] = np.nan
        with pytest.raises(MissingValuesError):
            phylo_mem_select(values, self.basis, self.prox, residuals=residuals)
        assert residuals.calls == 0


class TestEarlyExits:
    """
    Tests for the degenerate basis and the non-significant global test.
    """
    def setup_method(self, method):
        self.prox, self.basis = chain_structures(12)
        # Alternating values are negatively autocorrelated along the chain.
        self.values = pd.Series([1.0, -1.0] * 6, index=self.basis.labels)

    def test_non_significant_input_stops_after_global_test(self):
        residuals = CountingResiduals()
        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations_global=199,
                                  random_state=0, residuals=residuals)
        assert isinstance(result, SelectionResult)
        assert result.global_test.p_value >= 0.05
        assert len(result.global_test.simulated) == 199
        assert result.summary is None
        assert result.selected is None
        assert result.all_vectors is None
        assert result.n_selected == 0
        assert result.stop_reason == 'not_significant'
        assert residuals.calls == 0

    def test_full_basis_returned_on_request(self):
        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations_global=19,
                                  return_all_vectors=True, random_state=0)
        assert result.all_vectors is self.basis

    @pytest.mark.parametrize("values", [
        [1.0, -1.0] * 6,
        list(np.linspace(0, 1, 12)),
    ])
    def test_no_positive_eigenvalues(self, values):
        basis = EigenvectorBasis(self.basis.vectors, -np.abs(self.basis.values) - 0.1)
        residuals = CountingResiduals()
        result = phylo_mem_select(pd.Series(values, index=basis.labels), basis, self.prox,
                                  return_all_vectors=True, residuals=residuals)
        assert np.isnan(result.global_test.observed)
        assert result.global_test.p_value == 1.0
        assert result.stop_reason == 'no_positive_eigenvectors'
        assert result.summary is None
        assert result.all_vectors is basis
        assert residuals.calls == 0


class TestSelectionLoop:
    """
    Tests for the MIR loop: scoring, tie-breaking, termination and bookkeeping.
    """
    def setup_method(self, method):
        self.prox, self.basis = chain_structures(30)
        rng = np.random.default_rng(2024)
        self.signal_column = 1
        self.values = pd.Series(3 * self.basis.vectors.iloc[:, self.signal_column].to_numpy()
                                + rng.normal(scale=0.5, size=30), index=self.basis.labels)

    def test_known_eigenvector_is_selected_first(self):
        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations=999,
                                  n_permutations_global=999, random_state=7)
        assert result.global_test.p_value < 0.05
        first = result.summary.iloc[0]
        assert first['order'] == self.signal_column
        assert first['variable'] == 'ME2'
        assert first['eigenvalue'] == pytest.approx(self.basis.values[self.signal_column])
        # Removing the signal leaves roughly independent noise.
        assert abs(first['moran_resid']) < 0.5
        assert result.summary.index[0] == 1
        assert list(result.summary.columns) == ['variable', 'order', 'eigenvalue', 'moran_resid', 'p_value']
        assert isinstance(result.selected, EigenvectorBasis)
        assert list(result.selected.vectors.columns) == list(result.summary['variable'])
        np.testing.assert_array_equal(result.selected.values, result.summary['eigenvalue'].to_numpy())

    def test_loop_stops_at_first_non_significant_commit(self):
        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations=199,
                                  n_permutations_global=199, random_state=3)
        p_values = result.summary['p_value'].to_numpy()
        assert result.stop_reason == 'converged'
        assert p_values[-1] >= 0.05
        assert np.all(p_values[:-1] < 0.05)

    def test_shuffled_and_dict_inputs_are_aligned(self):
        options = dict(n_permutations=99, n_permutations_global=99, random_state=11)
        ordered = phylo_mem_select(self.values, self.basis, self.prox, **options)
        shuffled = phylo_mem_select(self.values.sample(frac=1, random_state=1), self.basis, self.prox, **options)
        as_dict = phylo_mem_select(self.values.to_dict(), self.basis, self.prox, **options)
        pd.testing.assert_frame_equal(ordered.summary, shuffled.summary)
        pd.testing.assert_frame_equal(ordered.summary, as_dict.summary)

    def test_same_seed_reproduces_summary(self):
        options = dict(n_permutations=99, n_permutations_global=99, random_state=5)
        first = phylo_mem_select(self.values, self.basis, self.prox, **options)
        second = phylo_mem_select(self.values, self.basis, self.prox, **options)
        np.testing.assert_array_equal(first.global_test.simulated, second.global_test.simulated)
        pd.testing.assert_frame_equal(first.summary, second.summary)

    def test_verbose_trace_does_not_change_outcome(self, caplog):
        options = dict(n_permutations=99, n_permutations_global=99, random_state=5)
        quiet = phylo_mem_select(self.values, self.basis, self.prox, **options)
        with caplog.at_level(logging.INFO, logger='phylo_mem'):
            loud = phylo_mem_select(self.values, self.basis, self.prox, verbose=True, **options)
        pd.testing.assert_frame_equal(quiet.summary, loud.summary)
        assert "Global test significant" in caplog.text
        assert "candidate" in caplog.text
        assert "Procedure stopped" in caplog.text

    def test_exhausting_candidates_terminates(self, caplog):
        prox, basis = chain_structures(10)
        values = pd.Series(np.linspace(0, 1, 10), index=basis.labels)
        n_positive = int(np.sum(basis.values > 0))
        residuals = CountingResiduals()

        # With alpha above one every commit stays "significant".
        with caplog.at_level(logging.WARNING, logger='phylo_mem'):
            result = phylo_mem_select(values, basis, prox, alpha=1.5, n_permutations=19,
                                      n_permutations_global=19, random_state=0, residuals=residuals)

        assert result.stop_reason == 'exhausted'
        orders = list(result.summary['order'])
        assert len(orders) == n_positive
        assert len(set(orders)) == n_positive
        assert sorted(orders) == list(np.flatnonzero(basis.values > 0))
        # Iteration k scores only the n_positive - k unselected columns, plus one commit.
        expected_calls = sum(n_positive - k + 1 for k in range(n_positive))
        assert residuals.calls == expected_calls
        assert "still significant" in caplog.text

    def test_ties_go_to_lowest_positive_index(self):
        calls = []

        def statistic(values, proximity):
            # Only the very first call (global observed) reports signal.
            calls.append(1)
            return 1.0 if len(calls) == 1 else 0.0

        eigenvalues = self.basis.values.copy()
        eigenvalues[0] = -1.0
        basis = EigenvectorBasis(self.basis.vectors, eigenvalues)
        result = phylo_mem_select(self.values, basis, self.prox, n_permutations=9,
                                  n_permutations_global=99, random_state=0, statistic=statistic)
        assert result.global_test.p_value == pytest.approx(0.01)
        assert list(result.summary['order']) == [1]
        assert result.stop_reason == 'converged'

    def test_non_finite_candidate_score_is_skipped(self):
        calls = []

        def statistic(values, proximity):
            calls.append(1)
            # Calls 1-100 are the global test; call 101 scores the first candidate.
            if len(calls) == 101:
                return np.nan
            return moran_statistic(values, proximity)

        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations=99,
                                  n_permutations_global=99, random_state=7, statistic=statistic)
        assert result.global_test.p_value < 0.05
        assert result.summary['order'].iloc[0] == self.signal_column
        assert np.isfinite(result.summary['moran_resid']).all()

    def test_all_non_finite_candidate_scores_raise(self):
        calls = []

        def statistic(values, proximity):
            calls.append(1)
            if len(calls) > 100:
                return np.nan
            return moran_statistic(values, proximity)

        with pytest.raises(NumericalError, match="finite"):
            phylo_mem_select(self.values, self.basis, self.prox, n_permutations=99,
                             n_permutations_global=99, random_state=7, statistic=statistic)

    def test_candidate_scoring_runs_no_permutation_tests(self, monkeypatch):
        tests_run = []

        def counting_test(*args, **kwargs):
            tests_run.append(kwargs.get('n_permutations'))
            return phylo_moran_test(*args, **kwargs)

        monkeypatch.setattr(mem_select, 'phylo_moran_test', counting_test)
        result = phylo_mem_select(self.values, self.basis, self.prox, n_permutations=99,
                                  n_permutations_global=99, random_state=7)
        # One global test plus one test per committed eigenvector.
        assert len(tests_run) == 1 + result.n_selected
        assert 0 not in tests_run


class TestMEMSelectorConfig:
    """
    Tests for building the selector from configuration.
    """
    def test_defaults(self):
        selector = MEMSelector.from_config(DefaultConfig())
        assert selector.n_permutations == 999
        assert selector.n_permutations_global == 9999
        assert selector.alpha == 0.05
        assert selector.return_all_vectors is False
        assert selector.random_state is None

    def test_dict_and_overrides(self):
        selector = MEMSelector.from_config({'alpha': 0.01, 'random_seed': 3}, n_permutations=99)
        assert selector.alpha == 0.01
        assert selector.random_state == 3
        assert selector.n_permutations == 99
        assert selector.n_permutations_global == 9999


class TestNoiseResponse:
    """
    Pure noise carries no phylogenetic structure and is rarely selected on.
    """
    def test_noise_is_mostly_not_significant(self):
        prox, basis = chain_structures(30)
        outcomes = []
        for seed in range(20):
            rng = np.random.default_rng(seed)
            values = pd.Series(rng.normal(size=30), index=basis.labels)
            result = phylo_mem_select(values, basis, prox, n_permutations=99,
                                      n_permutations_global=199, random_state=seed)
            if result.global_test.p_value >= 0.05:
                assert result.summary is None
            outcomes.append(result.global_test.p_value >= 0.05)
        assert sum(outcomes) >= 15
