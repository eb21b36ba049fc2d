"""Analyzer pod configuration and initialization."""

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration for analyzer pod."""

    # Service
    SERVICE_NAME = "analyzer"
    SERVICE_VERSION = "0.1.0"
    SERVICE_PORT = int(os.getenv("ANALYZER_PORT", 8001))
    ENV = os.getenv("ENV", "dev")

    # Limits
    MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", 10 * 1024 * 1024))  # 10 MB

    # Frame pacing: "none" analyses back to back, "realtime" spreads frames over the clip
    PACING = os.getenv("ANALYZER_PACING", "none").lower()


config = Config()

__all__ = ["Config", "config"]
