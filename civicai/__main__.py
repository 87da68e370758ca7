"""Run the sidecar with uvicorn: ``python -m civicai`` or ``civicai-sidecar``."""
import os

import uvicorn

from .services import _get_env_int


def main() -> None:
    host = os.environ.get("HOST", "0.0.0.0")
    port = _get_env_int("PORT", 8000)
    log_level = os.environ.get("LOG_LEVEL", "INFO").lower()
    uvicorn.run("civicai.main:app", host=host, port=port, log_level=log_level)


if __name__ == "__main__":
    main()
