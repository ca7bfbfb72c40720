import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Seconds between self-healing member-list rebroadcasts per room, 0 disables
PRESENCE_REFRESH_SECONDS = float(os.getenv("PRESENCE_REFRESH_SECONDS", 5.0))
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))
MAX_DISPLAY_NAME_LENGTH = int(os.getenv("MAX_DISPLAY_NAME_LENGTH", 64))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
