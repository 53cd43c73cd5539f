import logging

import numpy as np

from ..analysis.orthobasis import orthobasis
from ..analysis.proximity import tip_proximity
from ..methods.mem_select import MEMSelector
from .config import DefaultConfig, get_option

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Orchestrates the MEM selection workflow: proximity, eigenvector basis, selection.
    """
    def __init__(self, config=None):
        """
        Initializes the Pipeline with a configuration object.

        Args:
            config: A configuration object or dictionary. If None, DefaultConfig is used.
        """
        self.config = config if config is not None else DefaultConfig()
        self.selector = MEMSelector.from_config(self.config)
        self.proximity = None
        self.basis = None
        self.analysis_results = None
        logger.debug("Pipeline initialized with config: %s", type(self.config).__name__)

    def build_structures(self, tree):
        """
        Computes the tip proximity matrix and its eigenvector basis.

        Args:
            tree (ete3.Tree): The phylogenetic tree.

        Returns:
            tuple: ``(proximity, basis)``.
        """
        self.proximity = tip_proximity(
            tree,
            method=get_option(self.config, 'proximity_method', 'Abouheif'),
            normalize=get_option(self.config, 'proximity_normalize', 'row'),
            symmetric=get_option(self.config, 'proximity_symmetric', True),
        )
        self.basis = orthobasis(self.proximity)
        logger.debug("Pipeline: %d eigenvectors, %d with positive eigenvalues",
                     self.basis.n_vectors, int(np.sum(self.basis.values > 0)))
        return self.proximity, self.basis

    def run_analysis(self, tree, traits):
        """
        Runs the full analysis.

        Args:
            tree (ete3.Tree): The phylogenetic tree.
            traits (pandas.Series): Trait values or model residuals named by tip.

        Returns:
            SelectionResult: The outcome of the MIR selection.
        """
        logger.info("Pipeline: building proximity and eigenvectors for %d tips", len(traits))
        proximity, basis = self.build_structures(tree)
        self.analysis_results = self.selector.select(traits, basis, proximity)
        logger.info("Pipeline: %d eigenvectors selected (%s)",
                    self.analysis_results.n_selected, self.analysis_results.stop_reason)
        return self.analysis_results
