import logging

from plugnpin.config import load_settings


logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("docker").setLevel(logging.WARNING)

def setup_logger() -> logging.Logger:
    settings = load_settings()

    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    return logging.getLogger("plugnpin")

logger = setup_logger()
