import os

import uvicorn

from mercadito_backend.logging_config import configure_module_logging, setup_logging, uvicorn_log_config


def main():
    setup_logging()
    ws_level = configure_module_logging()

    uvicorn_log_level = os.environ.get("UVICORN_LOG_LEVEL", "info").lower()
    host = os.environ.get("SERVER_HOST", "0.0.0.0")
    port = int(os.environ.get("SERVER_PORT", "8000"))

    print(f"Starting server with WebSocket log level: {ws_level}, Uvicorn log level: {uvicorn_log_level}")

    uvicorn.run(
        "mercadito_backend.server:app",
        host=host,
        port=port,
        log_level=uvicorn_log_level,
        log_config=uvicorn_log_config(uvicorn_log_level),
        # One process per registry: connections live in memory
        workers=1,
    )


if __name__ == "__main__":
    main()
