import logging

import coloredlogs

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install colored console logging for entry points"""
    coloredlogs.install(level=level.upper(), fmt=LOG_FORMAT)
    # keep transport chatter out of the console
    for package in ["httpx", "httpcore"]:
        logging.getLogger(package).setLevel(logging.WARNING)
