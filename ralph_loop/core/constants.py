"""Constants used throughout ralph-loop."""


# State directory layout
DATA_DIR_NAME = ".ralph"
CONFIG_FILE_NAME = "config.yml"
PLAN_FILE_NAME = "plan.md"
PLAN_OWNER_FILE_NAME = "plan.owner"
ACTIVITY_FILE_NAME = "activity.md"
RUNS_DIR_NAME = "runs"
REGISTRY_FILE_NAME = "registry.json"
RUN_FILE_NAME = "run.json"
AGENT_LOG_NAME = "agent.log"
VERIFICATION_LOG_NAME = "verification.log"

# Loop defaults
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_BUDGET = 5.00  # USD per iteration
ESCALATION_ITERATION = 3
COMPLETION_SENTINEL = "RALPH_COMPLETE"

# Agent invocation
DEFAULT_AGENT_COMMAND = ["claude", "-p", "--dangerously-skip-permissions"]
DEFAULT_BUDGET_FLAG = "--max-budget-usd"
DEFAULT_OUTPUT_TAIL_LINES = 50
AGENT_LAUNCH_FAILURE_EXIT_CODE = 127

# Verification
DEFAULT_CHECK_TIMEOUT = 900  # 15 minutes
DEFAULT_EXCERPT_LINES = 8
FAILURE_LINE_PATTERN = r"error|fail"

CHECK_TESTS = "tests"
CHECK_LINT = "lint"
CHECK_TYPECHECK = "typecheck"
CHECK_BUILD = "build"

# Checks run for each verification mode; unknown modes fall back to "all"
MODE_CHECKS = {
    "tests": [CHECK_TESTS],
    "lint": [CHECK_LINT],
    "typecheck": [CHECK_TYPECHECK],
    "build": [CHECK_BUILD],
    "quick": [CHECK_LINT, CHECK_TYPECHECK],
    "all": [CHECK_TESTS, CHECK_LINT, CHECK_TYPECHECK],
}

# File patterns for project detection
PROJECT_PATTERNS = {
    "python": ["pyproject.toml", "setup.py", "requirements.txt", "Pipfile"],
    "node": ["package.json", "yarn.lock", "package-lock.json"],
    "rust": ["Cargo.toml"],
    "go": ["go.mod"],
}

# Default check commands per project type
DEFAULT_CHECK_COMMANDS = {
    "python": {
        CHECK_TESTS: ["pytest", "-q"],
        CHECK_LINT: ["ruff", "check", "."],
        CHECK_TYPECHECK: ["mypy", "."],
        CHECK_BUILD: ["python", "-m", "build"],
    },
    "node": {
        CHECK_TESTS: ["npm", "test"],
        CHECK_LINT: ["npm", "run", "lint"],
        CHECK_TYPECHECK: ["npx", "tsc", "--noEmit"],
        CHECK_BUILD: ["npm", "run", "build"],
    },
    "rust": {
        CHECK_TESTS: ["cargo", "test"],
        CHECK_LINT: ["cargo", "clippy", "--", "-D", "warnings"],
        CHECK_TYPECHECK: ["cargo", "check"],
        CHECK_BUILD: ["cargo", "build"],
    },
    "go": {
        CHECK_TESTS: ["go", "test", "./..."],
        CHECK_LINT: ["go", "vet", "./..."],
        CHECK_TYPECHECK: ["go", "build", "./..."],
        CHECK_BUILD: ["go", "build", "./..."],
    },
    "default": {
        CHECK_TESTS: ["make", "test"],
        CHECK_LINT: ["make", "lint"],
        CHECK_TYPECHECK: ["make", "typecheck"],
        CHECK_BUILD: ["make", "build"],
    },
}
