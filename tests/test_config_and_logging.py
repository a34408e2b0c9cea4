from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from eventhub.config import Config, load_config
from eventhub.logging_config import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_root_level = root.level
    names = ("eventhub", "eventhub.storage", "httpx")
    saved_levels = {name: logging.getLogger(name).level for name in names}
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_root_level)
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)


def test_load_config_parses_env(monkeypatch, tmp_path):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("ADMIN_IDS", "1, 2, nope")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "db" / "x.db"))
    monkeypatch.setenv("LOG_LEVELS", "eventhub.storage=debug, httpx=ERROR, broken, bad=LOUD")
    monkeypatch.setenv("PAGE_SIZE", "0")
    monkeypatch.setenv("DEBUG", "yes")

    cfg = load_config()

    assert cfg.admin_ids == [1, 2]
    assert cfg.logger_levels == {"eventhub.storage": "DEBUG", "httpx": "ERROR"}
    assert cfg.page_size == 10
    assert cfg.debug is True
    assert (tmp_path / "db").is_dir()


def test_load_config_requires_token(monkeypatch):
    monkeypatch.setattr("eventhub.config.load_dotenv", lambda: None)
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    with pytest.raises(RuntimeError):
        load_config()


def test_setup_logging_applies_config(tmp_path, restore_logging):
    cfg = Config(
        bot_token="t",
        log_level="WARNING",
        log_file=str(tmp_path / "logs" / "eventhub.log"),
        log_backup_count=2,
        logger_levels={"eventhub.storage": "DEBUG"},
    )

    log = setup_logging(cfg)

    assert log.name == "eventhub"
    assert log.level == logging.WARNING
    assert logging.getLogger("eventhub.storage").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].backupCount == 2
    assert "funcName" not in file_handlers[0].formatter._fmt


def test_setup_logging_debug_mode(tmp_path, restore_logging):
    cfg = Config(
        bot_token="t",
        log_file=str(tmp_path / "eventhub.log"),
        logger_levels={"httpx": "ERROR"},
        debug=True,
    )

    log = setup_logging(cfg)

    assert log.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.ERROR
    file_handler = next(h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler))
    assert "funcName" in file_handler.formatter._fmt
