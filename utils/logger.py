"""
utils/logger.py
----------------
Central logging setup. Every module logs through
logging.getLogger("<module>"); main.py calls configure_logging() once.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ============================================================
# 🔵 CONFIGURE GLOBAL LOGGING
# ============================================================

def configure_logging(log_dir: str = "logs", level: str = "INFO", filename: str = "signal_trader.log"):
    """
    Console + rotating file (5 MB x 3).
    Safe to call more than once: existing root handlers are replaced.
    """
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    if root.hasHandlers():
        root.handlers.clear()

    # -----------------------------
    # Console
    # -----------------------------
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # -----------------------------
    # File with rotation
    # -----------------------------
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, filename),
        maxBytes=5_000_000,   # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[console_handler, file_handler],
    )

    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("telethon").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info("📘 Logging configured (file + console).")
