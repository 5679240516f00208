import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    # basicConfig is a no-op once the root logger has handlers (uvicorn reload, tests)
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
