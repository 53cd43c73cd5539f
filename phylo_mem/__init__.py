"""
phylo_mem: selection of phylogenetic eigenvectors by minimisation of residual
phylogenetic autocorrelation (MIR).
"""

from .analysis.orthobasis import EigenvectorBasis, orthobasis
from .analysis.proximity import abouheif_proximity, tip_proximity
from .core.config import DefaultConfig, load_config
from .core.data_loader import DataLoader
from .core.exceptions import (
    ConfigurationError,
    IdentifierMismatchError,
    InputValidationError,
    LengthMismatchError,
    MissingValuesError,
    NumericalError,
    PhyloMemError,
    UnlabeledInputError,
)
from .core.framework import MEMSelectionFramework
from .methods.mem_select import MEMSelector, SelectionResult, phylo_mem_select
from .methods.moran_test import MoranTestResult, moran_statistic, phylo_moran_test
from .methods.regression import ols_residuals

__version__ = "0.1.0"
