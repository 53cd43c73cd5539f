import logging

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DefaultConfig:
    """
    Default configuration values for the phylo_mem package.
    """
    def __init__(self):
        # MIR selection defaults
        self.n_permutations = 999 # permutations for each sequential (commit) test
        self.n_permutations_global = 9999 # permutations for the global test
        self.alpha = 0.05
        self.return_all_vectors = False # keep the complete basis in the result
        self.verbose = False
        self.random_seed = None

        # Proximity and basis construction
        self.proximity_method = 'Abouheif'
        self.proximity_normalize = 'row' # 'row', 'col' or 'none'
        self.proximity_symmetric = True

        # Data loading
        self.tree_format = 'newick' # 'newick', 'nexus', 'phyloxml', 'nexml'
        self.taxon_column = 'taxon'
        self.trait_column = None # None picks the first column that is not the taxon column

        # Output and logging
        self.output_directory = './phylo_mem_output'
        self.log_level = 'INFO' # 'DEBUG', 'INFO', 'WARNING', 'ERROR'
        self.save_plots = False

    def __str__(self):
        return str(self.__dict__)


def get_option(config, name, default=None):
    """
    Reads a setting from either a DefaultConfig-like object or a dictionary.

    Args:
        config: A configuration object, a dictionary, or None.
        name (str): The setting to read.
        default: Value returned when the setting is absent.

    Returns:
        The configured value, or ``default``.
    """
    if config is None:
        return default
    if isinstance(config, dict):
        return config.get(name, default)
    return getattr(config, name, default)


def load_config(config_path: str) -> dict:
    """
    Loads a configuration from a YAML file and merges it with default settings.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        A dictionary containing the configuration. User values overwrite
        defaults when keys match.

    Raises:
        ConfigurationError: If the file is not valid YAML or does not hold a mapping.
    """
    config_data = DefaultConfig().__dict__

    try:
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Configuration file not found at '%s'. Using default configuration.", config_path)
        return config_data
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML configuration file at '{config_path}': {e}") from e

    if user_config: # empty files keep the defaults
        if not isinstance(user_config, dict):
            raise ConfigurationError(
                f"Configuration file '{config_path}' must contain a mapping, got {type(user_config).__name__}"
            )
        config_data.update(user_config)

    return config_data


def setup_logging(level='INFO'):
    """
    Attaches a stream handler to the package logger and sets its level.

    Args:
        level (str or int): A logging level name such as 'DEBUG' or a numeric level.

    Returns:
        logging.Logger: The configured ``phylo_mem`` logger.
    """
    package_logger = logging.getLogger('phylo_mem')
    if isinstance(level, str):
        level = level.upper()
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(name)s %(levelname)s: %(message)s'))
        package_logger.addHandler(handler)
    return package_logger


if __name__ == '__main__':
    print("--- Default configuration ---")
    print(DefaultConfig())
    print(f"Global permutations (default): {get_option(DefaultConfig(), 'n_permutations_global')}")
