from .mem_select import MEMSelector, SelectionResult, phylo_mem_select
from .moran_test import MoranTestResult, moran_statistic, phylo_moran_test
from .regression import ols_residuals
