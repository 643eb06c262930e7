#!/usr/bin/env python
"""
Forest Tuner - Main Entry Point
Runs a hyperparameter search for a tree-ensemble classifier evaluated by
repeated k-fold cross-validation, with optional out-of-bag mtry tuning.
"""
import sys
import logging
import argparse
import traceback
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

# Core Infrastructure
from modules.config_manager import ConfigurationManager
from modules.logging_config import LoggingConfigurator
from modules.data_manager import DataManager
from modules.hpo_search_engine import HPOSearchEngine
from modules.reporting_engine import ReportingEngine
from modules.oob_tuner import OOBTuner
from utils.exceptions import ForestTunerException
from utils import constants


def parse_arguments(argv=None):
    """
    Parse command-line arguments for configurable tuning runs.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Forest Tuner - Hyperparameter search with repeated k-fold cross-validation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.json",
        help="Path to the configuration JSON file"
    )

    parser.add_argument(
        "--schema",
        type=str,
        default="config/schema.json",
        help="Path to the configuration JSON schema"
    )

    parser.add_argument(
        "--strategy",
        choices=constants.SEARCH_STRATEGIES,
        default=None,
        help="Override search.strategy from the configuration"
    )

    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Optional run identifier (defaults to timestamp if not provided)"
    )

    parser.add_argument(
        "--oob",
        action="store_true",
        help="Also run the out-of-bag mtry step search"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and setup without running the search"
    )

    return parser.parse_args(argv)


def setup_run_directory(config: dict, run_id: str, logger: logging.Logger = None) -> Path:
    """
    Create the run directory `<base_results_dir>/<run_id>` with the
    numbered top-level result folders.
    """
    base_results_dir = config.get('outputs', {}).get('base_results_dir', 'results')
    run_dir = (Path(base_results_dir) / run_id).absolute()

    for name in constants.TOP_LEVEL_RESULT_DIRS:
        (run_dir / name).mkdir(parents=True, exist_ok=True)

    if logger:
        logger.info(f"Created run directory: {run_dir}")
    return run_dir


def log_phase(logger: logging.Logger, title: str) -> None:
    logger.info("\n" + "=" * 60)
    logger.info(title)
    logger.info("=" * 60)


def main(argv=None):
    """
    Main tuning orchestration function.

    Returns:
        int: Exit code (0 for success, 1 for errors, 130 on interrupt)
    """
    logger = None

    try:
        args = parse_arguments(argv)

        print("\n" + "=" * 80)
        print("    FOREST TUNER: HYPERPARAMETER SEARCH")
        print("=" * 80 + "\n")

        # ---------------------------------------------------------------
        # PHASE 0: INITIALIZATION & VALIDATION
        # ---------------------------------------------------------------
        config_manager = ConfigurationManager(config_path=args.config, schema_path=args.schema)
        config_manager.load_and_validate()
        config = config_manager.apply_overrides(strategy=args.strategy, oob=args.oob, verbose=args.verbose)

        logging_configurator = LoggingConfigurator(config)
        logging_configurator.setup()
        logger = logging_configurator.get_logger('forest_tuner')

        logger.info(f"Configuration loaded from: {args.config}")

        if args.run_id:
            config_manager.run_id = args.run_id
        run_id = config_manager.generate_run_id()
        run_dir = setup_run_directory(config, run_id, logger=logger)
        config['outputs']['base_results_dir'] = str(run_dir)
        config_manager.save_artifacts(str(run_dir))

        search_cfg = config.get('search', {})
        resampling_cfg = config.get('resampling', {})
        logger.info(f"Run ID: {run_id}")
        logger.info(
            f"Strategy: {search_cfg.get('strategy')} | Model: {config.get('model', {}).get('name')} | "
            f"CV: {resampling_cfg.get('repeats', 1)}x{resampling_cfg.get('folds', 10)}-fold "
            f"(seed={resampling_cfg.get('seed', 7)})"
        )

        if args.dry_run:
            logger.info("Dry run mode: validation complete. Exiting without running the search.")
            print("\n[SUCCESS] Configuration validated successfully.")
            return 0

        # ---------------------------------------------------------------
        # PHASE 1: DATA INGESTION
        # ---------------------------------------------------------------
        log_phase(logger, "PHASE 1: DATA INGESTION")
        dataset = DataManager(config, logger).execute(run_id)

        # ---------------------------------------------------------------
        # PHASE 2: HYPERPARAMETER SEARCH
        # ---------------------------------------------------------------
        log_phase(logger, f"PHASE 2: {search_cfg.get('strategy', '').upper()} SEARCH")
        trace = HPOSearchEngine(config, logger).execute(dataset)

        # ---------------------------------------------------------------
        # PHASE 3: REPORTING
        # ---------------------------------------------------------------
        log_phase(logger, "PHASE 3: SEARCH REPORTS")
        reports = ReportingEngine(config, logger).execute(trace, run_id)
        print("\nTop candidates:")
        print(reports['summary'].head(10).to_string(index=False))

        # ---------------------------------------------------------------
        # PHASE 4: OOB MTRY TUNING (optional)
        # ---------------------------------------------------------------
        if config.get('oob_tuning', {}).get('enabled', False):
            log_phase(logger, "PHASE 4: OOB MTRY TUNING")
            oob_result = OOBTuner(config, logger).execute(dataset)
            print("\nOOB mtry search:")
            print(oob_result['table'].to_string(index=False))

        # ---------------------------------------------------------------
        # COMPLETION
        # ---------------------------------------------------------------
        logger.info("\n" + "-" * 60)
        logger.info("TUNING COMPLETED SUCCESSFULLY")
        logger.info(f"Best configuration: {trace.best_params} ({trace.metric} {trace.best.mean:.4f})")
        logger.info(f"Output Directory: {run_dir}")
        logger.info("-" * 60 + "\n")

        print(f"\n[SUCCESS] Best configuration: {trace.best_params}. Results saved to: {run_dir}")
        return 0

    except ForestTunerException as e:
        msg = f"Tuning Error: {str(e)}"
        print(f"\n[ERROR] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1

    except KeyboardInterrupt:
        print("\n[INTERRUPTED] Tuning interrupted by user.")
        if logger:
            logger.warning("Tuning interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        msg = f"Unexpected Error: {str(e)}"
        print(f"\n[CRITICAL] {msg}")
        if logger:
            logger.critical(msg, exc_info=True)
        else:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
