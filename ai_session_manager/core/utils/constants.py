"""Constants used throughout the application."""

# Persisted layout
DEFAULT_SESSIONS_DIR = "~/.claude/sessions"
METADATA_FILENAME = "metadata.json"
CONTEXT_FILENAME = "context.txt"
LOCK_DIRNAME = ".lock"
LOCK_INFO_FILENAME = "lock_info.json"
COMMIT_DIRNAME = ".commit"

# Session names double as directory names
SESSION_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"

# Connection defaults handed to the secret provider
DEFAULT_PROJECT = "seed"
DEFAULT_CONFIG = "prd"

# Timeouts (seconds)
DEFAULT_LOCK_TIMEOUT = 30.0
DEFAULT_LOCK_POLL_INTERVAL = 0.1
DEFAULT_LOCK_STALE_GRACE = 5.0
DEFAULT_EXECUTION_TIMEOUT = 120.0
DEFAULT_PROBE_TIMEOUT = 5.0
VERSION_PROBE_TIMEOUT = 10.0
SNAPSHOT_ATTEMPTS = 200
SNAPSHOT_RETRY_INTERVAL = 0.005

# Conversation context framing
CONVERSATION_START_MARKER = "Starting new conversation."
HISTORY_HEADER = "Conversation history:"
TURN_SEPARATOR = "---"
NEW_MESSAGE_LABEL = "New message:"
USER_PREFIX = "User: "
ASSISTANT_PREFIX = "Assistant: "
DEFAULT_CONTEXT_PREVIEW_CHARS = 500

# Completion backend
DEFAULT_COMPLETION_COMMAND = ("claude", "-p")
DEFAULT_SYSTEM_PROMPT_FLAG = "--append-system-prompt"
DEFAULT_BACKEND_NAME = "claude"
DEFAULT_BACKEND_URL = "https://api.z.ai/api/anthropic"
REACHABLE_STATUS_CODES = frozenset({200, 401, 403})
MISSING_EXECUTABLE_EXIT_CODE = 127
FAILURE_OUTPUT_TAIL_CHARS = 2_000

# Broadcast fan-out
DEFAULT_BROADCAST_MAX_WORKERS = 16
