"""Configuration constants for task management functionality."""

import os

# Extraction
DEFAULT_EXTRACTION_TIMEOUT = 35.0  # seconds, bounds the single completion call
MAX_INPUT_CHARS = 1000
DELETE_CONTEXT_LIMIT = 10
MODIFY_CONTEXT_LIMIT = 20
MIN_KEYWORD_LENGTH = 3

# Completion engines
DEFAULT_COMPLETION_URL = os.environ.get(
    "TASK_ASSISTANT_COMPLETION_URL", "http://localhost:3001/api/extract-tasks"
)
DEFAULT_OLLAMA_MODEL = "llama3.2:3b"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_TEMPERATURE = 0.1

# Folders
ALL_TASKS_FOLDER = "All Tasks"
DEFAULT_FOLDER = "Personal"
DEFAULT_FOLDERS = ("Work", "Personal", "Shopping")
PROTECTED_FOLDERS = frozenset({ALL_TASKS_FOLDER, *DEFAULT_FOLDERS})

# Notifications
EARLY_WARNING_MINUTES = 5
NOTIFICATION_LOOKAHEAD_HOURS = 24

# Storage Configuration
DEFAULT_DATABASE_PATH = os.environ.get(
    "TASK_ASSISTANT_DB", os.path.expanduser("~/.task-assistant/tasks.db")
)
DEFAULT_WAL_MODE = True
DEFAULT_USER_ID = "default"
DEFAULT_REST_URL = os.environ.get("TASK_ASSISTANT_REST_URL")
DEFAULT_REST_KEY = os.environ.get("TASK_ASSISTANT_REST_KEY")
DEFAULT_REST_TIMEOUT = 10.0

# MCP Server Configuration
DEFAULT_MCP_HOST = "localhost"
DEFAULT_MCP_PORT = 3000
DEFAULT_MCP_SERVER_NAME = "task-assistant"

# Database Schema Version
SCHEMA_VERSION = 1
