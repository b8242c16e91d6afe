# contextual_ai/config.py
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Central defaults: each can be overridden by environment variable
DEFAULT_MODEL_TIER = os.getenv("CONTEXTUAL_AI_MODEL_TIER", "small")
DEFAULT_CONTEXT_TTL = float(os.getenv("CONTEXTUAL_AI_CONTEXT_TTL", "30"))
DEFAULT_MODEL_LOAD_TIMEOUT = float(os.getenv("CONTEXTUAL_AI_MODEL_LOAD_TIMEOUT", "120"))
DEFAULT_INFERENCE_TIMEOUT = float(os.getenv("CONTEXTUAL_AI_INFERENCE_TIMEOUT", "30"))
DEFAULT_MAX_CONTEXT_TOKENS = int(os.getenv("CONTEXTUAL_AI_MAX_CONTEXT_TOKENS", "1000"))

# Conversation history kept per conversation id
MAX_HISTORY_MESSAGES = 10

REDACTION_MARKER = "[REDACTED]"
PRIVACY_FILTERED_MARKER = "[Content filtered for privacy]"
