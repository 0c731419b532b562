import os
from dotenv import load_dotenv
from pathlib import Path

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env')

BASE_DIR = Path(__file__).parent.parent

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
COMPLETION_MODEL = os.getenv("COMPLETION_MODEL", "gpt-4")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30"))
# Interactive queries must never be retried silently by the SDK
OPENAI_MAX_RETRIES = int(os.getenv("OPENAI_MAX_RETRIES", "0"))

# Knowledge files
NOTES_PATH = os.getenv("NOTES_PATH", str(BASE_DIR / "knowledge" / "training-notes.md"))
EMBEDDINGS_PATH = os.getenv("EMBEDDINGS_PATH", str(BASE_DIR / "signal-embeds.json"))

# Retrieval
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "2"))
CONTEXT_MAX_CHARS = int(os.getenv("CONTEXT_MAX_CHARS", "6000"))

# Conversation history
HISTORY_MAX_EXCHANGES = int(os.getenv("HISTORY_MAX_EXCHANGES", "10"))
# Least recently active users beyond this are dropped from memory
HISTORY_MAX_USERS = int(os.getenv("HISTORY_MAX_USERS", "1000"))
# Empty means history is kept in memory only
CONVERSATION_LOG_DB_PATH = os.getenv("CONVERSATION_LOG_DB_PATH", "")

# Refresh Scheduler
REFRESH_ENABLED = os.getenv("REFRESH_ENABLED", "true").lower() == "true"
REFRESH_INTERVAL_SECONDS = float(os.getenv("REFRESH_INTERVAL_SECONDS", "900"))  # 15 minutes
REFRESH_EMBED_ATTEMPTS = int(os.getenv("REFRESH_EMBED_ATTEMPTS", "3"))
REFRESH_RETRY_MIN_WAIT = float(os.getenv("REFRESH_RETRY_MIN_WAIT", "2"))  # seconds
REFRESH_RETRY_MAX_WAIT = float(os.getenv("REFRESH_RETRY_MAX_WAIT", "10"))  # seconds

# Chat surface
TRAINING_CHANNEL_ID = os.getenv("TRAINING_CHANNEL_ID", "")
ACOLYT_PASSKEY = os.getenv("ACOLYT_PASSKEY", "")
