import logging

import pytest

from passage_rag.common.logging_utils import configure_logging


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("passage_rag")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_configure_logging_sets_level_and_single_handler():
    configure_logging({"level": "debug"})
    logger = configure_logging({"level": "WARNING"})

    named = [h for h in logger.handlers if h.get_name() == "passage_rag"]
    assert len(named) == 1
    assert logger.level == logging.WARNING


def test_configure_logging_defaults_to_info():
    assert configure_logging().level == logging.INFO


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError):
        configure_logging({"level": "chatty"})
