"""
HTML cleaning and structure extraction.
"""

from .density_filter import DensityFilter
from .structure import StructureBuilder, StructureExtractor, build_from_text, extract_title

__all__ = [
    "DensityFilter",
    "StructureBuilder",
    "StructureExtractor",
    "build_from_text",
    "extract_title",
]
