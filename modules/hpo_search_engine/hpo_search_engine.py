import json
import logging
import datetime
from pathlib import Path
from typing import Dict, Any, Iterable, Iterator, Optional, Tuple

import pandas as pd
from joblib import Parallel, delayed

from modules.base.base_engine import BaseEngine
from modules.data_manager.dataset import Dataset
from modules.hpo_search_engine.candidate_generators import CandidateGenerator, build_candidate_generator
from modules.hpo_search_engine.search_trace import SearchTrace
from modules.model_factory import ModelFactory, TrainingFunction
from modules.resampling_engine import EvaluationResult, ResamplingEvaluator, ResamplingPlan
from utils.cache import params_fingerprint
from utils.error_handling import handle_engine_errors
from utils.exceptions import EmptyCandidateSetError, ForestTunerException
from utils.file_io import NumpyEncoder, append_jsonl, read_jsonl, save_json
from utils import constants

def _evaluate_candidate(evaluator: ResamplingEvaluator, params: Dict[str, Any],
                        candidate_id: int, random_state: int) -> EvaluationResult:
    """Module-level so joblib workers can unpickle it."""
    return evaluator.evaluate(params, candidate_id=candidate_id, random_state=random_state)

class HPOSearchEngine(BaseEngine):
    """
    Hyperparameter search orchestrator.

    Drives a candidate generator, cross-validates every candidate with one
    shared ResamplingEvaluator and returns the SearchTrace with the best
    candidate selected. Any evaluation failure aborts the search.

    Extras:
    - Optional joblib worker pool across candidates (deterministic seeds).
    - Append-only JSONL progress log with resume by parameter fingerprint.
    - Safety cap on the number of candidates.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        self.search_config = config.get('search', {})
        self.metric = self.search_config.get('metric', constants.DEFAULT_METRIC)
        self.secondary_metrics = self.search_config.get('secondary_metrics', [])
        self.n_jobs = config.get('execution', {}).get('n_jobs', 1)
        self.max_configs = config.get('resources', {}).get('max_search_configs', 1000)

        seeds = config.get('_internal_seeds', {})
        master_seed = config.get('resampling', {}).get('seed', 7)
        self.search_seed = seeds.get('search', master_seed + 1000)
        self.model_seed = seeds.get('model', master_seed + 2000)

        self.persist = self.persist_outputs and config.get('outputs', {}).get('persist_search', True)
        self.progress_file: Optional[Path] = None
        self.run_signature: Optional[str] = None
        self.completed: Dict[str, Dict[str, Any]] = {}

    def _get_engine_directory_name(self) -> str:
        return constants.SEARCH_DIR

    @handle_engine_errors("Hyperparameter Search")
    def execute(self, dataset: Dataset, generator: Optional[CandidateGenerator] = None,
                training_fn: Optional[TrainingFunction] = None,
                plan: Optional[ResamplingPlan] = None) -> SearchTrace:
        """
        Run one search over `dataset`.

        Args:
            dataset: Validated dataset, shared read-only by every candidate.
            generator: Candidate policy; built from config['search'] when omitted.
            training_fn: Training function; built from config['model'] when omitted.
            plan: Resampling plan; built from config['resampling'] when omitted.

        Returns:
            SearchTrace with the best candidate selected.
        """
        generator = generator if generator is not None else build_candidate_generator(self.search_config, self.search_seed)
        training_fn = training_fn if training_fn is not None else self._default_training_fn()
        plan = plan if plan is not None else ResamplingPlan.from_config(self.config)

        self.logger.info(
            f"Starting hyperparameter search ({generator.describe()}) with "
            f"{plan.repeats}x{plan.folds}-fold CV (seed={plan.seed}), metric={self.metric}"
        )

        evaluator = ResamplingEvaluator(
            dataset, plan, training_fn,
            metric=self.metric,
            secondary_metrics=self.secondary_metrics,
            logger=self.logger,
        )

        if self.persist:
            self.run_signature = self._run_signature(plan)
            self._setup_progress()

        trace = self.run_search(generator, evaluator)

        if self.persist:
            self._finalize_results(trace, plan)

        best = trace.best
        self.logger.info(
            f"Best configuration: {best.params} ({self.metric} {best.mean:.4f} +/- {best.std:.4f}, "
            f"candidate {best.candidate_id} of {len(trace)})"
        )
        return trace

    def run_search(self, candidates: Iterable[Dict[str, Any]], evaluator: ResamplingEvaluator) -> SearchTrace:
        """Evaluate every candidate in generation order and select the best."""
        trace = SearchTrace(metric=evaluator.metric, strategy=getattr(candidates, 'strategy', None))

        if self.n_jobs == 1:
            for idx, params in self._limited(candidates):
                trace.append(self._evaluate_or_restore(evaluator, idx, params))
                if len(trace) % 10 == 0:
                    self.logger.info(f"Processed {len(trace)} configs...")
        else:
            for result in self._run_parallel(candidates, evaluator):
                trace.append(result)

        if len(trace) == 0:
            raise EmptyCandidateSetError("Candidate generator produced no configurations; search cannot proceed.")

        return trace.finalize()

    def _run_parallel(self, candidates: Iterable[Dict[str, Any]],
                      evaluator: ResamplingEvaluator) -> Iterator[EvaluationResult]:
        """Evaluate on a worker pool; results come back in submission order."""
        indexed = list(self._limited(candidates))
        for _, params in indexed:
            evaluator.validate(params)
        # Build the shared folds once before the evaluator is shipped to workers
        evaluator.splits

        restored = {idx: self._restore(idx, params) for idx, params in indexed}
        pending = [(idx, params) for idx, params in indexed if restored[idx] is None]

        self.logger.info(f"Evaluating {len(pending)} candidates with n_jobs={self.n_jobs} "
                         f"({len(indexed) - len(pending)} restored)")
        try:
            fresh = Parallel(n_jobs=self.n_jobs)(
                delayed(_evaluate_candidate)(evaluator, params, idx, self.model_seed + idx)
                for idx, params in pending
            )
        except ForestTunerException as e:
            self.logger.error(f"Search aborted: {e}")
            raise

        fresh_by_idx = {result.candidate_id: result for result in fresh}
        for idx, _ in indexed:
            result = restored[idx] or fresh_by_idx[idx]
            if restored[idx] is None:
                self._save_progress(result)
            yield result

    def _limited(self, candidates: Iterable[Dict[str, Any]]) -> Iterator[Tuple[int, Dict[str, Any]]]:
        for idx, params in enumerate(candidates):
            if idx >= self.max_configs:
                self.logger.warning(f"Max search configs ({self.max_configs}) reached. Stopping search early.")
                return
            yield idx, params

    def _evaluate_or_restore(self, evaluator: ResamplingEvaluator, idx: int,
                             params: Dict[str, Any]) -> EvaluationResult:
        restored = self._restore(idx, params)
        if restored is not None:
            return restored

        try:
            result = evaluator.evaluate(params, candidate_id=idx, random_state=self.model_seed + idx)
        except ForestTunerException as e:
            self.logger.error(f"Search aborted at candidate {idx} {params}: {e}")
            raise

        self.logger.info(f"[{idx + 1}] {params} -> {self.metric} {result.mean:.4f} (+/- {result.std:.4f})")
        self._save_progress(result)
        return result

    def _default_training_fn(self) -> TrainingFunction:
        model_cfg = self.config.get('model', {})
        return ModelFactory.training_function(
            model_cfg.get('name', 'RandomForestClassifier'),
            model_cfg.get('params', {}),
        )

    # --- Progress log / resume ---

    def _setup_progress(self) -> None:
        progress_dir = self.output_dir / constants.SEARCH_PROGRESS_DIR
        progress_dir.mkdir(parents=True, exist_ok=True)
        self.progress_file = progress_dir / constants.PROGRESS_FILE
        self.completed = {}

        if self.search_config.get('resume', False):
            self._load_progress()
        elif self.progress_file.exists():
            self.progress_file.unlink()

    def _run_signature(self, plan: ResamplingPlan) -> str:
        """Fingerprint of everything besides the candidate that shapes its scores."""
        model_cfg = self.config.get('model', {})
        return params_fingerprint({
            'folds': plan.folds,
            'repeats': plan.repeats,
            'seed': plan.seed,
            'stratify': plan.stratify,
            'model': model_cfg.get('name', 'RandomForestClassifier'),
            'model_params': model_cfg.get('params', {}),
            'model_seed': self.model_seed,
            'metric': self.metric,
            'secondary_metrics': sorted(self.secondary_metrics),
        })

    def _load_progress(self) -> None:
        """Load completed entries keyed by parameter fingerprint."""
        if not self.progress_file.exists():
            return
        stale = 0
        for entry in read_jsonl(self.progress_file, self.logger):
            if 'config_hash' not in entry:
                continue
            if entry.get('run_signature') != self.run_signature:
                stale += 1
                continue
            self.completed[entry['config_hash']] = entry
        if stale:
            self.logger.warning(
                f"Ignored {stale} progress entries recorded under a different resampling plan or model setup."
            )
        self.logger.info(f"Resumed search: {len(self.completed)} configs completed.")

    def _restore(self, idx: int, params: Dict[str, Any]) -> Optional[EvaluationResult]:
        entry = self.completed.get(params_fingerprint(params))
        if entry is None:
            return None
        self.logger.info(f"[{idx + 1}] {params} restored from progress log")
        return EvaluationResult.from_record(entry, candidate_id=idx)

    def _save_progress(self, result: EvaluationResult) -> None:
        """Append result with locking."""
        if self.progress_file is None:
            return
        entry = {
            'config_hash': params_fingerprint(result.params),
            'run_signature': self.run_signature,
            'timestamp': datetime.datetime.now().isoformat(),
            **result.to_record(),
        }
        append_jsonl(entry, self.progress_file)

    def _finalize_results(self, trace: SearchTrace, plan: ResamplingPlan) -> None:
        """Write the long-format score table and the best configuration."""
        rows = []
        for result in trace:
            params_json = json.dumps(result.params, sort_keys=True, cls=NumpyEncoder)
            metric_scores = {result.metric: result.scores, **result.secondary_scores}
            for metric, scores in metric_scores.items():
                for position, score in enumerate(scores):
                    rows.append({
                        'candidate_id': result.candidate_id,
                        'params': params_json,
                        'repeat': position // plan.folds,
                        'fold': position % plan.folds,
                        'metric': metric,
                        'score': float(score),
                    })
        self.save_table(pd.DataFrame(rows), constants.ALL_CONFIGURATIONS_FILE, subdir=constants.SEARCH_RESULTS_DIR)

        best = trace.best
        formatted_best = {
            'strategy': trace.strategy,
            'model': self.config.get('model', {}).get('name'),
            'candidate_id': best.candidate_id,
            'params': best.params,
            'metric': trace.metric,
            'mean': best.mean,
            'std': best.std,
            'n_candidates': len(trace),
            'resampling': {'folds': plan.folds, 'repeats': plan.repeats, 'seed': plan.seed},
        }
        save_json(formatted_best, self.output_dir / constants.SEARCH_RESULTS_DIR / constants.BEST_CONFIGURATION_FILE)
