from .orthobasis import EigenvectorBasis, orthobasis
from .proximity import abouheif_proximity, tip_proximity
