"""Survey engine constants shared across the SDK.

These values are referenced by the phase builder, the batch controller, the
prompt manager, and the orchestrator.

Several constants can be overridden via environment variables so that
deployments can tune model behaviour without code changes.
"""

import os

# Every batch of questions is exactly this wide: one generation call and one
# interim analysis per batch.
BATCH_SIZE = 5

# AI-generated questions always carry exactly six options:
#   [0] yes, [1] don't know, [2] no, [3..5] predicted nuanced stances.
OPTION_COUNT = 6
YES_OPTION_INDEX = 0
UNKNOWN_OPTION_INDEX = 1
NO_OPTION_INDEX = 2

# Default number of answers before the session offers finalization.
# Must be a positive multiple of BATCH_SIZE.
DEFAULT_REPORT_TARGET = int(os.getenv("DEFAULT_REPORT_TARGET", "25"))

# A report needs at least one full batch of answers.
MIN_ANSWERS_FOR_REPORT = BATCH_SIZE

# Span assumed by phase lookup when a session carries an empty profile.
FALLBACK_PROFILE_SPAN = 50

# How many times a version insert is retried after losing a race on the
# (owner, version) unique constraint.
VERSION_RETRY_LIMIT = int(os.getenv("VERSION_RETRY_LIMIT", "3"))

# --- Model call options per task ---
# Overridable so operators can trade cost for quality per task.
QUESTION_TEMPERATURE = float(os.getenv("QUESTION_TEMPERATURE", "0.8"))
ANALYSIS_TEMPERATURE = float(os.getenv("ANALYSIS_TEMPERATURE", "0.7"))
ANALYSIS_MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", "1000"))
REPORT_TEMPERATURE = float(os.getenv("REPORT_TEMPERATURE", "0.7"))
REPORT_MAX_TOKENS = int(os.getenv("REPORT_MAX_TOKENS", "4000"))
SURVEY_REPORT_MAX_TOKENS = int(os.getenv("SURVEY_REPORT_MAX_TOKENS", "8000"))
SURVEY_REPORT_REASONING_EFFORT = os.getenv("SURVEY_REPORT_REASONING_EFFORT", "high")
AUTHORING_TEMPERATURE = 0.7
AUTHORING_MAX_TOKENS = 1000

# Input length limits enforced at the API boundary.
MAX_PURPOSE_LENGTH = 5000
MAX_BACKGROUND_LENGTH = 50000
MAX_REPORT_INSTRUCTIONS_LENGTH = 10000
MAX_TITLE_LENGTH = 100
MAX_PRESET_TITLE_LENGTH = 200
MAX_THEMES = 20
MAX_THEME_LENGTH = 500
MAX_FIXED_QUESTIONS = 50

# Number of characters of the purpose used as the default session title.
DEFAULT_TITLE_LENGTH = 50
