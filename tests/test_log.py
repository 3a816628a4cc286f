from __future__ import annotations

import logging

from locus_inventory.utils.log import LOG_FILENAME, configure_logging


def test_configure_logging_writes_rotating_file(tmp_path):
    root = logging.getLogger()
    previous_handlers, previous_level = list(root.handlers), root.level
    try:
        configure_logging("debug", tmp_path / "logs")
        logging.getLogger("locus_inventory.tests").info("scanner ready")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert "scanner ready" in (tmp_path / "logs" / LOG_FILENAME).read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_unknown_level_falls_back_to_info(tmp_path):
    root = logging.getLogger()
    previous_handlers, previous_level = list(root.handlers), root.level
    try:
        configure_logging("chatty")
        assert root.level == logging.INFO
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
