"""
Configuration & logging
=======================
Reads ``config.yaml`` (or the file named by ``LENS_STUDIO_CONFIG``) and sets
up the console/file loggers.  Missing keys fall back to ``AppConfig``
defaults.
"""
import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from service_client import DEFAULT_ENDPOINT

CONFIG_ENV_VAR = "LENS_STUDIO_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


@dataclass(frozen=True)
class AppConfig:
    endpoint: str = DEFAULT_ENDPOINT
    timeout_s: float = 120.0
    max_workers: int = 4
    archive_name: str = "lens_images.zip"
    log_level: str = "INFO"
    log_file: Optional[str] = None


def config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_config(path=None) -> AppConfig:
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return AppConfig()

    try:
        with open(path, "rt", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level.")

    known = {f.name: f for f in fields(AppConfig)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"{path}: unknown keys {', '.join(unknown)}.")

    values = {}
    for key, value in data.items():
        if value is None:
            continue
        try:
            if key == "timeout_s":
                values[key] = float(value)
            elif key == "max_workers":
                values[key] = int(value)
            else:
                values[key] = str(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{path}: invalid value for {key}: {value!r}") from e

    if values.get("timeout_s", 1.0) <= 0:
        raise ValueError(f"{path}: timeout_s must be > 0.")
    if values.get("max_workers", 1) < 1:
        raise ValueError(f"{path}: max_workers must be >= 1.")
    return AppConfig(**values)


LOGGER_NAMES = ("lens_model", "artifact_pipeline", "service_client", "lens_visualization", "common")


def setup_logging(level="INFO", log_file: Optional[str] = None) -> None:
    """
    Attach a console handler (and optionally a file handler) to the app loggers.

    Existing handlers are cleared first so Streamlit reruns don't duplicate
    every line.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for old in list(logger.handlers):
            logger.removeHandler(old)
            old.close()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    logging.getLogger("common").info("Logging initialized.")
