from .config import DefaultConfig, load_config, setup_logging
from .data_loader import DataLoader
