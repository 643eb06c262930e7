# utils/constants.py

# --- Top-Level Result Directories ---
# Sequentially numbered for proper sorting

CONFIG_DIR = "01_RunConfiguration"            # Run config, metadata, seeds
DATA_INTEGRITY_DIR = "02_DataQualityChecks"   # Dataset validation summary
SEARCH_DIR = "03_HyperparameterSearch"        # Search trace, progress log, best config
OOB_TUNING_DIR = "04_OOBMtryTuning"           # Out-of-bag mtry step search
REPORTING_DIR = "05_SearchReports"            # Ranking and paired comparisons

# Canonical list used when building the base results structure (in order).
TOP_LEVEL_RESULT_DIRS = [
    CONFIG_DIR,
    DATA_INTEGRITY_DIR,
    SEARCH_DIR,
    OOB_TUNING_DIR,
    REPORTING_DIR,
]

# --- Search Sub-Directories ---
SEARCH_PROGRESS_DIR = "progress"
SEARCH_RESULTS_DIR = "results"

# --- File Names ---
CONFIG_USED_FILE = "config_used.json"
CONFIG_HASH_FILE = "config_hash.txt"
RUN_METADATA_FILE = "run_metadata.json"
PROGRESS_FILE = "search_progress.jsonl"
ALL_CONFIGURATIONS_FILE = "all_configurations.parquet"
BEST_CONFIGURATION_FILE = "best_configuration.json"
CANDIDATE_SUMMARY_FILE = "candidate_summary.parquet"
CANDIDATE_COMPARISON_FILE = "comparison_vs_best.parquet"
OOB_TUNING_FILE = "oob_mtry_search.parquet"

# --- Search Strategies ---
STRATEGY_RANDOM = "random"
STRATEGY_GRID = "grid"
STRATEGY_MANUAL = "manual"
SEARCH_STRATEGIES = [STRATEGY_RANDOM, STRATEGY_GRID, STRATEGY_MANUAL]

# --- Metrics ---
DEFAULT_METRIC = "accuracy"
