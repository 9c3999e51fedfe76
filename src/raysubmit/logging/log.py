# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/raysubmit/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

DEFAULT_LOG_DIR = Path.home() / ".raysubmit" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "raysubmit",
    verbose: bool = False,
    run_id: str | None = None,
) -> tuple[logging.Logger, str, Path]:
    """
    Initializes:
      - a DEBUG log file per submission (poll attempts, port-forward stderr)
      - console output at INFO, or DEBUG with --verbose
      - returns run_id so observers can reuse it
    """
    run_id = run_id or str(uuid.uuid4())

    if base_dir is None:
        base_dir = DEFAULT_LOG_DIR
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)

    # stderr, so it never interleaves with the job's own stdout
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.debug("=== raysubmit run started ===")
    logger.debug("run_id=%s", run_id)
    logger.debug("log_file=%s", log_path)

    return logger, run_id, log_path
