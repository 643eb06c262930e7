import pytest

from modules.hpo_search_engine import SearchTrace, select_best
from modules.resampling_engine import EvaluationResult
from utils.exceptions import EmptyCandidateSetError


def _result(candidate_id, scores, **params):
    return EvaluationResult(candidate_id=candidate_id, params=params or {'mtry': candidate_id + 1}, scores=tuple(scores))


def test_select_best_strict_maximum():
    results = [_result(0, [0.7, 0.8]), _result(1, [0.9, 0.9]), _result(2, [0.8, 0.8])]
    assert select_best(results) == 1


def test_select_best_ties_keep_earliest():
    results = [_result(0, [0.5, 0.5]), _result(1, [0.75, 0.75]), _result(2, [0.5, 1.0])]
    assert select_best(results) == 1


def test_select_best_empty():
    with pytest.raises(EmptyCandidateSetError):
        select_best([])


def test_trace_exposes_best():
    trace = SearchTrace(metric='accuracy', strategy='grid')
    trace.append(_result(0, [0.6], mtry=1))
    trace.append(_result(1, [0.9], mtry=2))
    trace.finalize()

    assert len(trace) == 2
    assert trace.best_id == 1
    assert trace.best_params == {'mtry': 2}
    assert [r.candidate_id for r in trace] == [0, 1]
    assert trace[0].params == {'mtry': 1}
    assert "best_id=1" in repr(trace)


def test_empty_trace_finalize():
    with pytest.raises(EmptyCandidateSetError):
        SearchTrace(metric='accuracy').finalize()
