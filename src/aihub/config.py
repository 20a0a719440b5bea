"""Central configuration for paths, endpoints and constants."""

import os
from pathlib import Path

# Data directory, override with AIHUB_DATA_DIR env var
DATA_DIR = Path(os.environ.get("AIHUB_DATA_DIR", str(Path.home() / ".aihub")))

# Storage paths
PREFS_PATH = DATA_DIR / "preferences.db"

# Endpoints
MISTRAL_BASE_URL = os.environ.get("AIHUB_MISTRAL_BASE_URL", "https://api.mistral.ai")
GEMINI_BASE_URL = os.environ.get(
    "AIHUB_GEMINI_BASE_URL", "https://generativelanguage.googleapis.com"
)
POLLINATIONS_URL_TEMPLATE = (
    "https://image.pollinations.ai/prompt/{prompt}"
    "?seed={token}&width={width}&height={height}&nologo=true"
)

# Transport
REQUEST_TIMEOUT_SECONDS = 60.0
CHAT_TEMPERATURE = 0.7

# Sessions
DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 30
COLLECTION_VERSION = 1

# Preference keys
CHAT_HISTORY_KEY = "chat_history"
MISTRAL_KEY = "mistral_key"
GEMINI_KEY = "gemini_key"
CHAT_MODEL_KEY = "chat_model"
IMAGE_MODEL_KEY = "image_model"

# Model choices
CHAT_MODELS = ("mistral-small-latest", "mistral-large-latest")
DEFAULT_CHAT_MODEL = CHAT_MODELS[0]
POLLINATIONS_MODEL = "pollinations"
IMAGE_MODELS = ("gemini-2.0-flash", "gemini-2.5-flash-image", POLLINATIONS_MODEL)
DEFAULT_IMAGE_MODEL = IMAGE_MODELS[0]

# Sketch
SKETCH_STROKE_WIDTH = 10
SKETCH_DEFAULT_PROMPT = "Generate a high quality image based on this sketch."
IMAGE_DEFAULT_SIZE = 1024

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
