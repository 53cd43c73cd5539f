import logging

import plotly.graph_objects as go
from plotly.subplots import make_subplots

logger = logging.getLogger(__name__)


class InteractiveVisualizer:
    """
    Handles interactive visualizations of selection results using Plotly.
    """
    def __init__(self, alpha=0.05):
        """
        Initializes the InteractiveVisualizer.

        Args:
            alpha (float): Significance threshold drawn on p-value plots.
        """
        self.alpha = alpha

    def plot_selection_trace(self, result, **kwargs):
        """
        Plots the residual statistic and the p-value after each selection step.

        Args:
            result (SelectionResult): A selection that committed at least one eigenvector.
            **kwargs: ``show`` (bool) displays the figure; other keywords go to
                      ``fig.update_layout``.

        Returns:
            plotly.graph_objects.Figure: Two rows, statistic on top and p-value below.

        Raises:
            ValueError: If the result holds no selection steps.
        """
        if result.summary is None or result.summary.empty:
            raise ValueError("Selection result has no selection steps to plot")
        summary = result.summary
        show = kwargs.pop('show', False)

        fig = make_subplots(rows=2, cols=1, shared_xaxes=True,
                            subplot_titles=("Residual autocorrelation", "Permutation p-value"))
        fig.add_trace(go.Scatter(x=summary['variable'], y=summary['moran_resid'],
                                 mode='lines+markers', name='Residual statistic'), row=1, col=1)
        fig.add_trace(go.Scatter(x=summary['variable'], y=summary['p_value'],
                                 mode='lines+markers', name='p-value'), row=2, col=1)
        fig.add_hline(y=self.alpha, line_dash='dash', row=2, col=1)
        fig.update_layout(title="MIR eigenvector selection", **kwargs)

        if show:
            fig.show()
        return fig

    def plot_null_distribution(self, test_result, **kwargs):
        """
        Plots the permutation null distribution with the observed statistic.

        Args:
            test_result (MoranTestResult): A test run with at least one permutation.
            **kwargs: ``show`` (bool) displays the figure; other keywords go to
                      ``fig.update_layout``.

        Returns:
            plotly.graph_objects.Figure

        Raises:
            ValueError: If the test has no simulated values.
        """
        if len(test_result.simulated) == 0:
            raise ValueError("Test result has no permutations to plot")
        show = kwargs.pop('show', False)

        fig = go.Figure()
        fig.add_trace(go.Histogram(x=test_result.simulated, name='Permutations'))
        fig.add_vline(x=test_result.observed, line_color='red',
                      annotation_text=f"observed (p = {test_result.p_value:.4f})")
        fig.update_layout(title="Permutation null distribution", xaxis_title="Statistic",
                          yaxis_title="Count", **kwargs)

        if show:
            fig.show()
        return fig
