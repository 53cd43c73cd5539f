import logging
import os

from ..visualization.interactive import InteractiveVisualizer
from .config import DefaultConfig, get_option, setup_logging
from .data_loader import DataLoader
from .exceptions import InputValidationError
from .pipeline import Pipeline

logger = logging.getLogger(__name__)


class MEMSelectionFramework:
    """
    Main entry point for phylogenetic eigenvector selection.
    This class integrates data loading, the selection pipeline and visualization.
    """
    def __init__(self, config=None):
        """
        Initializes the MEMSelectionFramework.

        Args:
            config: A configuration object or dictionary. If None, DefaultConfig is used.
                    It is passed down to DataLoader and Pipeline.
        """
        self.config = config or DefaultConfig()
        setup_logging(get_option(self.config, 'log_level', 'INFO'))
        self.data_loader = DataLoader(self.config)
        self.pipeline = Pipeline(self.config)

        self.tree = None
        self.traits = None
        self.results = None

        logger.debug("MEMSelectionFramework initialized with config: %s", type(self.config).__name__)

    def load_data(self, tree_file: str, traits_file: str, tree_format: str = None, **kwargs):
        """
        Loads and validates a tree and a trait file using the DataLoader.

        Args:
            tree_file (str): Path to the phylogenetic tree file.
            traits_file (str): Path to the trait data file.
            tree_format (str): Format of the tree file. Defaults to the configured format.
            **kwargs: Passed to DataLoader.load_traits (column names, pandas.read_csv options).
        """
        self.tree = self.data_loader.load_tree(tree_file, tree_format=tree_format)
        self.traits = self.data_loader.load_traits(traits_file, **kwargs)
        self.data_loader.validate_data(self.tree, self.traits)

    def select(self):
        """
        Runs the MIR selection on the loaded data.

        Returns:
            SelectionResult

        Raises:
            InputValidationError: If no data has been loaded.
        """
        if self.tree is None or self.traits is None:
            raise InputValidationError("Tree and/or trait data not loaded. Call load_data first.")
        self.results = self.pipeline.run_analysis(self.tree, self.traits)
        return self.results

    def visualize(self, **kwargs):
        """
        Plots the null distribution of the global test and, if any eigenvectors
        were selected, the selection trace.

        Args:
            **kwargs: Passed to the InteractiveVisualizer plotting methods.

        Returns:
            dict: Figures keyed by 'null_distribution' and 'selection_trace'.
        """
        if self.results is None:
            raise InputValidationError("No selection results. Call select first.")
        visualizer = InteractiveVisualizer(alpha=get_option(self.config, 'alpha', 0.05))

        figures = {}
        if len(self.results.global_test.simulated) > 0:
            figures['null_distribution'] = visualizer.plot_null_distribution(self.results.global_test, **kwargs)
        if self.results.n_selected > 0:
            figures['selection_trace'] = visualizer.plot_selection_trace(self.results, **kwargs)

        if get_option(self.config, 'save_plots', False):
            self._save_figures(figures)
        return figures

    def _save_figures(self, figures):
        output_directory = get_option(self.config, 'output_directory', './phylo_mem_output')
        os.makedirs(output_directory, exist_ok=True)
        for name, fig in figures.items():
            path = os.path.join(output_directory, f"{name}.html")
            fig.write_html(path)
            logger.info("Saved %s", path)
