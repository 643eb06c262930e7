"""
Reporting Module.

Responsible for ranking evaluated candidates, summary statistics
and paired comparisons against the selected configuration.
"""

from .reporting_engine import ReportingEngine, summarize_trace, compare_to_best
from .stat_tests import compare_paired_scores

__all__ = [
    'ReportingEngine',
    'summarize_trace',
    'compare_to_best',
    'compare_paired_scores',
]
