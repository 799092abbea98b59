STATE_DIR_NAME = ".kanban_scheduler"
CONFIG_FILE = "config.yaml"

TASK_STATUS_TODO = "todo"
TASK_STATUS_WIP = "wip"
TASK_STATUS_DONE = "done"
TASK_STATUS_CODE_REVIEW = "code_review"
TASK_STATUS_DONE_UNIT_TEST = "done_unit_test"
TASK_STATUS_DONE_E2E_TESTING = "done_e2e_testing"
TASK_STATUS_DEPLOY = "deploy"

# Statuses that count as "completed" when checking whether a dependency is satisfied.
DEFAULT_COMPLETED_STATUSES = frozenset(
    {
        TASK_STATUS_DONE,
        TASK_STATUS_CODE_REVIEW,
        TASK_STATUS_DONE_UNIT_TEST,
        TASK_STATUS_DONE_E2E_TESTING,
        TASK_STATUS_DEPLOY,
    }
)
DEFAULT_INITIAL_STATUS = TASK_STATUS_TODO

DEFAULT_MAX_PARALLEL = 4
MAX_PARALLEL_ENV_VAR = "MAX_PARALLEL_TASKS"

BRANCH_PREFIX = "feature/task-"
BRANCH_ID_CHARS = 8
BRANCH_TITLE_CHARS = 30

EXIT_OK = 0
EXIT_LOAD_ERROR = 1
EXIT_REJECTED = 2
