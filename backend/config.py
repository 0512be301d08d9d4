"""Configuration management for the Ollama conversational relay."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Backend Configuration
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "cogito")
BACKEND_TIMEOUT_SECONDS = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "60"))

# Server Configuration
PORT = int(os.getenv("PORT", "3001"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Storage Configuration
CONVERSATIONS_FILE = os.getenv("CONVERSATIONS_FILE", "data/conversations.json")
AGENT_LOG_FILE = os.getenv("AGENT_LOG_FILE", "data/agent.log")

# Conversation Configuration
MAX_TURNS = int(os.getenv("MAX_TURNS", "50"))  # hard cap on persisted turns
RECENT_WINDOW = int(os.getenv("RECENT_WINDOW", "10"))  # turns sent verbatim
SUMMARY_SNIPPET_CHARS = 60

# Prompt Configuration
ENABLE_DEEP_THINKING = os.getenv(
    "ENABLE_DEEP_THINKING",
    str("cogito" in OLLAMA_MODEL.lower())
).lower() in ("1", "true", "yes")

# Thought Pipeline Configuration
REFLECTION_THRESHOLD = 3
MAX_REFLECTIONS = 2
LEARNING_INDEX_SIZE = int(os.getenv("LEARNING_INDEX_SIZE", "100"))  # entries kept per annotation kind
REVIEW_FREQUENCY = int(os.getenv("REVIEW_FREQUENCY", "1"))  # review every Nth annotation

# Shared Thoughts Configuration
THOUGHTS_FILE = os.getenv("THOUGHTS_FILE", "data/thoughts.json")
THOUGHT_MAX_CHARS = 280

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
