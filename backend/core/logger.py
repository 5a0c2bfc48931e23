# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

Levels, handlers, rotation and format live in etc/logging.conf.  The file
references the log path as %(log_file)s; this module substitutes the real
location (log/app.log under the project root) and hands the result to
``logging.config.fileConfig``.

Import the ready-made logger anywhere:
    from core.logger import logger

Never pass passwords, derived keys, nonces or entry values to the logger.
Usernames, tenant ids and entry names are fine.
"""

import configparser
import logging
import logging.config
from pathlib import Path

# project root: backend/core/logger.py  →  ../../  →  tenvault/
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR      = _PROJECT_ROOT / "log"
_LOG_FILE     = _LOG_DIR / "app.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"

_LOG_DIR.mkdir(exist_ok=True)

_raw = _LOGGING_CONF.read_text(encoding="utf-8")
_raw = _raw.replace("%(log_file)s", str(_LOG_FILE).replace("\\", "/"))

# RawConfigParser: the format strings contain %(asctime)s and friends, which
# the interpolating ConfigParser would choke on.
_parser = configparser.RawConfigParser()
_parser.read_string(_raw)

logging.config.fileConfig(_parser, disable_existing_loggers=False)

logger = logging.getLogger("tenvault")
