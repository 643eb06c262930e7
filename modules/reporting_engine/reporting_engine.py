import logging
import numpy as np
import pandas as pd
from typing import Dict, Any

from modules.base.base_engine import BaseEngine
from modules.hpo_search_engine.search_trace import SearchTrace
from modules.reporting_engine.stat_tests import compare_paired_scores
from utils.error_handling import handle_engine_errors
from utils.exceptions import EmptyCandidateSetError
from utils import constants


def summarize_trace(trace: SearchTrace) -> pd.DataFrame:
    """
    One row per evaluated candidate, ranked by mean score (descending).

    Ranking is stable: candidates with equal means keep generation order,
    so rank 1 is always the candidate the search selected as best.
    """
    if len(trace) == 0:
        raise EmptyCandidateSetError("Cannot summarize an empty search trace.")

    rows = []
    for result in trace:
        scores = np.asarray(result.scores, dtype=float)
        row = {"candidate_id": result.candidate_id}
        row.update({f"param_{k}": v for k, v in result.params.items()})
        row.update({
            "metric": result.metric,
            "n_scores": len(scores),
            "mean": result.mean,
            "std": result.std,
            "min": result.min,
            "max": result.max,
            "range": float(scores.max() - scores.min()),
        })
        for name in result.secondary_scores:
            row[f"mean_{name}"] = result.secondary_mean(name)
        rows.append(row)

    df = pd.DataFrame(rows)
    df = df.sort_values("mean", ascending=False, kind="mergesort").reset_index(drop=True)
    df["rank"] = np.arange(1, len(df) + 1)
    df["is_best"] = df["candidate_id"] == trace.best_id
    return df


def compare_to_best(trace: SearchTrace, alpha: float = 0.05) -> pd.DataFrame:
    """Paired tests of every candidate against the best on the shared folds."""
    best = trace.best
    rows = []
    for result in trace:
        stats = compare_paired_scores(best.scores, result.scores, alpha=alpha)
        rows.append({
            "candidate_id": result.candidate_id,
            "best_id": best.candidate_id,
            "mean": result.mean,
            **stats,
        })
    return pd.DataFrame(rows)


class ReportingEngine(BaseEngine):
    """
    Result Reporter.
    Read-only over the SearchTrace: ranking, summary statistics and
    paired comparison against the selected configuration.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.alpha = config.get('reporting', {}).get('alpha', 0.05)

    def _get_engine_directory_name(self) -> str:
        return constants.REPORTING_DIR

    @handle_engine_errors("Reporting")
    def execute(self, trace: SearchTrace, run_id: str = None) -> Dict[str, Any]:
        summary = summarize_trace(trace)
        comparison = compare_to_best(trace, alpha=self.alpha)

        top = summary.iloc[0]
        self.logger.info(
            f"Ranked {len(summary)} candidates. Top: candidate {int(top['candidate_id'])} "
            f"{trace.metric}={top['mean']:.4f} (std {top['std']:.4f})"
        )
        n_significant = int(comparison["significant"].sum())
        if n_significant:
            self.logger.info(f"{n_significant} candidate(s) differ significantly from the best (alpha={self.alpha}).")

        if self.persist_outputs:
            self.save_table(summary, constants.CANDIDATE_SUMMARY_FILE)
            self.save_table(comparison, constants.CANDIDATE_COMPARISON_FILE)
            self.logger.info(f"Search reports saved to {self.output_dir}")

        return {"summary": summary, "comparison": comparison}
