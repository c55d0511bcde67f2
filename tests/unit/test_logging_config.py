import io
import logging

import pytest

from resx_sync.logging_config import LOGGER_NAME, TqdmLoggingHandler, setup_logger


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_console_only_logger():
    logger = setup_logger("debug", None, True)

    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert [type(h) for h in logger.handlers] == [TqdmLoggingHandler]


def test_file_logging_creates_directory(tmp_path):
    log_path = tmp_path / "logs" / "resx_sync.log"

    logger = setup_logger("INFO", str(log_path), False)
    logging.getLogger(f"{LOGGER_NAME}.content_writer").info("Created %s", "Strings.fr-CA.resx")
    for handler in logger.handlers:
        handler.flush()

    assert log_path.exists()
    assert "INFO - Created Strings.fr-CA.resx" in log_path.read_text(encoding="utf-8")


def test_repeated_setup_does_not_duplicate_handlers():
    setup_logger("INFO", None, True)
    logger = setup_logger("INFO", None, True)

    assert len(logger.handlers) == 1


def test_unknown_level_falls_back_to_info():
    assert setup_logger("chatty", None, False).level == logging.INFO


def test_tqdm_handler_writes_formatted_record_to_stream():
    stream = io.StringIO()
    handler = TqdmLoggingHandler(stream=stream)
    handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))

    handler.emit(logging.LogRecord(LOGGER_NAME, logging.WARNING, __file__, 1, "Rate limited %s", ("fr-CA",), None))

    assert stream.getvalue() == "WARNING - Rate limited fr-CA\n"


def test_reconfiguring_closes_previous_file_handler(tmp_path):
    logger = setup_logger("INFO", str(tmp_path / "first.log"), False)
    (first_handler,) = logger.handlers

    setup_logger("INFO", str(tmp_path / "second.log"), False)

    assert first_handler.stream is None
