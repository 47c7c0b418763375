"""Content quality evaluation."""

from .evaluator import ContentQualityEvaluator
from .language import detect_language

__all__ = ["ContentQualityEvaluator", "detect_language"]
