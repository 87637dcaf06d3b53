"""Map clustering and click resolution."""

from .indexer import SpatialIndexer
from .interaction import ClusterInteractionResolver
from .kdindex import KDIndex

__all__ = ["ClusterInteractionResolver", "KDIndex", "SpatialIndexer"]
