"""
HPO Search Engine
=================

Responsibility:
- Candidate generation (random, grid, manual list).
- Repeated k-fold evaluation of every candidate on shared folds.
- Best-configuration selection and the ordered search trace.
- Progress log with resume for long searches.
"""

from .candidate_generators import (
    CandidateGenerator,
    GridSearchGenerator,
    RandomSearchGenerator,
    ManualListGenerator,
    build_candidate_generator,
)
from .search_trace import SearchTrace, select_best
from .hpo_search_engine import HPOSearchEngine

__all__ = [
    'HPOSearchEngine',
    'SearchTrace',
    'select_best',
    'CandidateGenerator',
    'GridSearchGenerator',
    'RandomSearchGenerator',
    'ManualListGenerator',
    'build_candidate_generator',
]
