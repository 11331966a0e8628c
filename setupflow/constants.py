"""Shared defaults for setupflow."""

DEFAULT_LOG_LIMIT = 50
DEFAULT_MIN_STEP_DURATION = 0.5
DEFAULT_INTER_STEP_DELAY = 0.2
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_TRAINING_POLL_INTERVAL = 2.0
DEFAULT_POLL_TICKS = 10
DEFAULT_PARALLEL_FAILURE_SAMPLE = 3
DEFAULT_STOP_TIMEOUT = 0.5

JOB_MAX_ATTEMPTS = 180  # 15 minutes at 5s intervals
GSC_SYNC_MAX_ATTEMPTS = 60  # 5 minutes at 5s intervals
TRAINING_MAX_ATTEMPTS = 60

STORAGE_KEY_PREFIX = "signal-wizard"
PARALLEL_PROGRESS_LOG_KEY = "parallel-progress"

DEFAULT_STATS = {
    "pages_discovered": 0,
    "keywords_tracked": 0,
    "issues_found": 0,
    "opportunities_detected": 0,
    "schema_generated": 0,
    "recommendations_created": 0,
}
