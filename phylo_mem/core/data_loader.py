import io
import logging

import pandas as pd
from Bio import Phylo # Nexus, PhyloXML and NeXML readers
from ete3 import Tree # For tree handling

from .config import DefaultConfig, get_option
from .exceptions import IdentifierMismatchError, InputValidationError, MissingValuesError

logger = logging.getLogger(__name__)

BIOPYTHON_FORMATS = ('nexus', 'phyloxml', 'nexml')


class DataLoader:
    """
    Handles loading and validation of phylogenetic trees and tip trait data.
    """
    def __init__(self, config=None):
        """
        Initializes the DataLoader with a configuration object.

        Args:
            config: A configuration object or dictionary. If None, DefaultConfig is used.
        """
        self.config = config if config is not None else DefaultConfig()
        self.tree = None
        self.traits = None

    def load_tree(self, file_path: str, tree_format: str = None):
        """
        Loads a phylogenetic tree from a specified file.

        Newick files are parsed directly by ete3. Nexus, PhyloXML and NeXML files
        are read with Bio.Phylo and converted to Newick for ete3.

        Args:
            file_path (str): The path to the tree file.
            tree_format (str): 'newick', 'nexus', 'phyloxml' or 'nexml'.
                               Defaults to the configured ``tree_format``.

        Returns:
            ete3.Tree: The loaded tree, also stored as ``self.tree``.

        Raises:
            FileNotFoundError: If the tree file does not exist.
            ValueError: If the tree format is unsupported.
        """
        tree_format = (tree_format or get_option(self.config, 'tree_format', 'newick')).lower()
        if tree_format == 'newick':
            with open(file_path, 'r') as f:
                newick = f.read().strip()
        elif tree_format in BIOPYTHON_FORMATS:
            bio_tree = Phylo.read(file_path, tree_format)
            buffer = io.StringIO()
            Phylo.write(bio_tree, buffer, 'newick')
            newick = buffer.getvalue().strip()
        else:
            raise ValueError(f"Unsupported tree format '{tree_format}'")

        self.tree = Tree(newick, format=1)
        logger.info("Tree loaded from %s: %d tips", file_path, len(self.tree))
        return self.tree

    def load_traits(self, file_path: str, taxon_column: str = None, trait_column: str = None, **kwargs):
        """
        Loads one trait per taxon from a delimited text file.

        Args:
            file_path (str): The path to the trait file.
            taxon_column (str): Column holding tip labels. Defaults to the configured ``taxon_column``.
            trait_column (str): Column holding the trait. Defaults to the configured
                                ``trait_column`` or, if unset, the first other column.
            **kwargs: Additional keyword arguments passed to pandas.read_csv.

        Returns:
            pandas.Series: Float trait values indexed by taxon, also stored as ``self.traits``.

        Raises:
            FileNotFoundError: If the trait file does not exist.
            InputValidationError: If the requested columns are not present.
        """
        taxon_column = taxon_column or get_option(self.config, 'taxon_column', 'taxon')
        trait_column = trait_column or get_option(self.config, 'trait_column')

        df = pd.read_csv(file_path, **kwargs)
        if taxon_column not in df.columns:
            raise InputValidationError(f"Taxon column '{taxon_column}' not found in {file_path}")
        if trait_column is None:
            others = [c for c in df.columns if c != taxon_column]
            if not others:
                raise InputValidationError(f"No trait column found in {file_path}")
            trait_column = others[0]
        elif trait_column not in df.columns:
            raise InputValidationError(f"Trait column '{trait_column}' not found in {file_path}")

        self.traits = pd.Series(pd.to_numeric(df[trait_column]).to_numpy(dtype=float),
                                index=df[taxon_column].astype(str), name=trait_column)
        logger.info("Trait '%s' loaded from %s: %d taxa", trait_column, file_path, len(self.traits))
        return self.traits

    def validate_data(self, tree=None, traits=None):
        """
        Performs consistency checks between a tree and a trait vector.

        Args:
            tree: The tree to validate. If None, uses self.tree.
            traits (pandas.Series): The traits to validate. If None, uses self.traits.

        Returns:
            bool: True if the data is valid.

        Raises:
            InputValidationError: If the tree or traits have not been loaded.
            MissingValuesError: If any trait value is missing.
            IdentifierMismatchError: If taxa are duplicated or differ from the tree tips.
        """
        current_tree = tree if tree is not None else self.tree
        current_traits = traits if traits is not None else self.traits
        if current_tree is None or current_traits is None:
            raise InputValidationError("Tree and/or trait data have not been loaded yet.")

        if current_traits.isna().any():
            missing = list(current_traits.index[current_traits.isna()])
            raise MissingValuesError(f"Missing trait values for taxa: {missing}")
        if current_traits.index.has_duplicates:
            raise IdentifierMismatchError("Duplicated taxa in trait data")

        tree_taxa = set(current_tree.get_leaf_names())
        trait_taxa = set(current_traits.index)
        if tree_taxa != trait_taxa:
            raise IdentifierMismatchError(
                f"Taxa in traits but not in tree: {sorted(trait_taxa - tree_taxa)}; "
                f"taxa in tree but not in traits: {sorted(tree_taxa - trait_taxa)}"
            )
        return True
