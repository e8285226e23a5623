import logging
from pathlib import Path

import pytest

from project_check.foundation.logging_utils import close_logger, setup_operational_logger


def test_file_handler_writes_unicode_at_debug(tmp_path: Path):
    logger, log_file = setup_operational_logger("unit_log", log_dir=str(tmp_path), level="WARNING")
    logger.debug("arrow → and accents é")
    close_logger(logger)

    assert log_file == str(tmp_path / "unit_log_oplog.log")
    content = Path(log_file).read_text(encoding="utf-8")
    assert "| DEBUG | arrow → and accents é" in content


def test_console_only_logger_has_no_file(capsys):
    logger, log_file = setup_operational_logger("unit_console", level="info")

    logger.info("hello")
    close_logger(logger)

    assert log_file is None
    assert logger.propagate is False
    assert "| INFO | hello" in capsys.readouterr().err


def test_reconfiguring_replaces_handlers(tmp_path):
    logger, _ = setup_operational_logger("unit_again", log_dir=str(tmp_path))
    logger, _ = setup_operational_logger("unit_again")

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    close_logger(logger)


def test_unknown_level_raises():
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_operational_logger("unit_bad", level="LOUD")


def test_failed_file_setup_keeps_existing_handlers(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    logger, _ = setup_operational_logger("unit_keep")

    with pytest.raises(OSError):
        setup_operational_logger("unit_keep", log_dir=str(blocker))

    assert len(logger.handlers) == 1
    close_logger(logger)
