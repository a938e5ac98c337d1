"""
Price trend analysis.
"""

from .trend import TrendClassifier
from .report_builder import ReportBuilder, update_history

__all__ = ['TrendClassifier', 'ReportBuilder', 'update_history']
