import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from sparkpath.utils.env_cfg import load_host_env
from sparkpath.utils.logging_cfg import setup_logging


def main() -> None:
    load_dotenv()
    log_path = setup_logging()
    host = load_host_env()
    logger.info("Logging to {}", log_path)
    logger.info("Server running on port {}", host.server_port)
    uvicorn.run(
        "sparkpath.core.api:app",
        host=host.server_host,
        port=host.server_port,
        log_level="info",
    )


if __name__ == "__main__":
    sys.path.append(str(Path(__file__).parents[2].resolve()))
    main()
