import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_pitchkeys_logger():
    """Drop handlers installed by ``setup_logging`` between tests."""
    yield
    logger = logging.getLogger("pitchkeys")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
