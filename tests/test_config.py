from __future__ import annotations

import logging

import pytest

from config import AppConfig, load_config, setup_logging
from service_client import DEFAULT_ENDPOINT


def test_missing_file_gives_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "absent.yaml")
    assert config == AppConfig()
    assert config.endpoint == DEFAULT_ENDPOINT
    assert config.archive_name == "lens_images.zip"


def test_values_are_read_and_typed(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("endpoint: http://render:9000/generate-images/\ntimeout_s: 30\nmax_workers: '2'\nlog_file:\n", encoding="utf-8")

    config = load_config(path)

    assert config.endpoint == "http://render:9000/generate-images/"
    assert config.timeout_s == 30.0
    assert config.max_workers == 2
    assert config.log_file is None


def test_env_var_selects_file(tmp_path, monkeypatch) -> None:
    path = tmp_path / "other.yaml"
    path.write_text("archive_name: out.zip\n", encoding="utf-8")
    monkeypatch.setenv("LENS_STUDIO_CONFIG", str(path))
    assert load_config().archive_name == "out.zip"


@pytest.mark.parametrize("text", [
    "- just\n- a list\n",
    "endpoint: [unclosed\n",
    "unknown_key: 1\n",
    "timeout_s: soon\n",
    "timeout_s: 0\n",
    "max_workers: 0\n",
])
def test_bad_files_are_rejected(tmp_path, text) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError, match="config.yaml"):
        load_config(path)


def test_setup_logging_does_not_duplicate_handlers(tmp_path) -> None:
    log_file = tmp_path / "studio.log"
    setup_logging("debug", str(log_file))
    setup_logging("debug", str(log_file))

    logger = logging.getLogger("lens_model")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logger.debug("layer table redrawn")
    for handler in logger.handlers:
        handler.flush()
    assert "lens_model - DEBUG - layer table redrawn" in log_file.read_text(encoding="utf-8")

    setup_logging("INFO")
    assert len(logging.getLogger("lens_model").handlers) == 1
