"""Constants for the Ralph loop application.

This module defines the configuration defaults used throughout Ralph,
including directory paths, Claude CLI invocation, display limits and
loop timing.

Ralph spawns the Claude CLI in streaming mode, turns its NDJSON output into
display events, and keeps respawning it while the specs status table still
lists work.
"""

from pathlib import Path

# =============================================================================
# Application Directory Structure
# =============================================================================
# Base directory for all Ralph data (~/.ralph)
RALPH_HOME_DIR = Path.home() / ".ralph"

# Default JSON config file
CONFIG_FILE = RALPH_HOME_DIR / "config.json"

# Log file directory (daily-rotated files, one line per record)
LOG_DIR = RALPH_HOME_DIR / "logs"
LOG_FILE_NAME = "ralph.log"

# Log files older than this are removed on startup
RETENTION_DAYS = 14

# =============================================================================
# Claude CLI Configuration
# =============================================================================
DEFAULT_CLAUDE_PATH = "~/.claude/local/claude"

# Ralph depends on this exact output format for streaming
CLAUDE_STREAM_ARGS = [
    "--output-format=stream-json",
    "--verbose",
    "--print",
    "--include-partial-messages",
]

DEFAULT_PROMPT_PATH = "./PROMPT.md"
DEFAULT_SPECS_DIR = "./specs"

# Status table inside the specs directory
SPECS_README = "README.md"

# =============================================================================
# Loop Configuration
# =============================================================================
# Negative = run until no work remains, 0 = disabled, positive = bounded
DEFAULT_ITERATIONS = -1
MIN_ITERATIONS = -1
MAX_ITERATIONS = 999

# Interval between status table polls while a run is active (seconds)
SPEC_POLL_INTERVAL = 2.0

# Seconds to wait after SIGTERM before SIGKILL on manual stop
STOP_GRACE_SECONDS = 5.0

# Bytes read from subprocess stdout per chunk
READ_CHUNK_SIZE = 64 * 1024

# =============================================================================
# Display Limits
# =============================================================================
BASH_COMMAND_MAX_LEN = 50
TOOL_INPUT_MAX_LEN = 60
RESULT_PREVIEW_LINES = 3

# Snippet length kept from a malformed NDJSON line
PARSE_FAILURE_SNIPPET_LEN = 120

# =============================================================================
# Environment Overrides
# =============================================================================
ENV_CLAUDE_PATH = "RALPH_CLAUDE_PATH"
ENV_PROMPT_PATH = "RALPH_PROMPT_PATH"
ENV_SPECS_DIR = "RALPH_SPECS_DIR"
ENV_LOG_LEVEL = "RALPH_LOG"
ENV_ITERATIONS = "RALPH_ITERATIONS"
