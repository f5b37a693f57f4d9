import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False

def configureLogging(level: str = "INFO") -> None:
    global _configured
    rootLogger = logging.getLogger("ddl_catalog")
    rootLogger.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    rootLogger.addHandler(handler)
    _configured = True

def getLogger(name: str) -> logging.Logger:
    if not name.startswith("ddl_catalog"):
        name = f"ddl_catalog.{name}"
    return logging.getLogger(name)
