import os
import threading


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ["true", "1", "yes", "on"]


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE", "development")

        # Security: Force disable debug info in API responses (overrides DEBUG_MODE)
        self.DISABLE_API_DEBUG_INFO = _env_flag("DISABLE_API_DEBUG_INFO", "false")

        # Create tables and seed lookup rows on startup (development convenience)
        self.CREATE_SCHEMA_ON_STARTUP = _env_flag("CREATE_SCHEMA_ON_STARTUP", "false")

        # Token verification (shared with the account service that issues the tokens)
        self.JWT_SECRET = os.environ.get("JWT_SECRET", "mercadito-dev-secret")
        self.JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRES_MINUTES = int(os.environ.get("JWT_EXPIRES_MINUTES", "60"))

        # WebSocket relay
        self.WS_SEND_TIMEOUT = float(os.environ.get("WS_SEND_TIMEOUT", "5.0"))
        self.WS_MAX_CONNECTIONS_PER_USER = int(os.environ.get("WS_MAX_CONNECTIONS_PER_USER", "10"))
        self.WS_MAX_TOTAL_CONNECTIONS = int(os.environ.get("WS_MAX_TOTAL_CONNECTIONS", "10000"))
        self.WS_PRESENCE_ENABLED = _env_flag("WS_PRESENCE_ENABLED", "true")
        self.WS_PRESENCE_TTL = int(os.environ.get("WS_PRESENCE_TTL", "60"))
        self.WS_ENFORCE_CONVERSATION_MEMBERSHIP = _env_flag("WS_ENFORCE_CONVERSATION_MEMBERSHIP", "true")

        # Notification type names (notification_types.type_name)
        self.CHAT_NOTIFICATION_TYPE = os.environ.get("CHAT_NOTIFICATION_TYPE", "Mensaje")
        self.DIRECT_NOTIFICATION_TYPE = os.environ.get("DIRECT_NOTIFICATION_TYPE", "Alerta")

        # HTTP rate limits (slowapi syntax)
        self.MESSAGE_CREATE_RATE_LIMIT = os.environ.get("MESSAGE_CREATE_RATE_LIMIT", "60/minute")

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
