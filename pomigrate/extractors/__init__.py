"""Source extractors for Project Online data."""

from .base import BaseExtractor, ExtractionResult
from .json_extractor import JSONExtractor
from .odata_extractor import ODataExtractor, is_guid

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "JSONExtractor",
    "ODataExtractor",
    "is_guid",
]
