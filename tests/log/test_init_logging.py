import logging
from pathlib import Path

from raysubmit.logging.log import init_logging


def test_init_logging_writes_run_file(tmp_path: Path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="raysubmit-test", verbose=True)
    try:
        logger.info("hello from test")
        for h in logger.handlers:
            h.flush()
        text = log_path.read_text()
        assert log_path.parent == tmp_path
        assert run_id in log_path.name
        assert f"run_id={run_id}" in text
        assert "hello from test" in text
        levels = sorted(h.level for h in logger.handlers)
        assert levels == [logging.DEBUG, logging.DEBUG]
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()


def test_init_logging_reuses_supplied_run_id(tmp_path: Path):
    logger, run_id, _ = init_logging(base_dir=tmp_path, name="raysubmit-test2", run_id="fixed-run")
    try:
        assert run_id == "fixed-run"
        console = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]
        assert console[0].level == logging.INFO
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
