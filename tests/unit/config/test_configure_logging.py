from __future__ import annotations

import io
import logging

from strata import Composer, ComposerConfig, configure_logging
from strata.core.logging import LOGGER_NAME


def _strata_handlers() -> list:
    return [h for h in logging.getLogger(LOGGER_NAME).handlers if not isinstance(h, logging.NullHandler)]


def test_configure_sets_level_and_installs_one_handler() -> None:
    logger = configure_logging("debug")
    configure_logging("DEBUG")

    assert logger.name == "strata"
    assert logger.level == logging.DEBUG
    assert len(_strata_handlers()) == 1


def test_reconfiguring_updates_existing_handler() -> None:
    configure_logging("DEBUG")
    logger = configure_logging("ERROR")

    assert logger.level == logging.ERROR
    assert [h.level for h in _strata_handlers()] == [logging.ERROR]


def test_unknown_level_falls_back_to_warning() -> None:
    assert configure_logging("chatty").level == logging.WARNING


def test_engine_records_reach_the_configured_stream() -> None:
    stream = io.StringIO()
    configure_logging("DEBUG", stream=stream)

    class Enemy:
        def get_hp(self) -> int:
            return 1

    composer = Composer(config=ComposerConfig(log_level="DEBUG"))
    spec = composer.deploy({"name": "Hard"})
    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 3)
    composer.activate(spec)
    composer.reset()

    output = stream.getvalue()
    assert "deployed layer Hard" in output
    assert "installed refinement for" in output
    assert "restored original" in output


def test_composer_applies_configured_level() -> None:
    Composer(config=ComposerConfig(log_level="INFO"))

    assert logging.getLogger(LOGGER_NAME).level == logging.INFO
    assert [h.level for h in _strata_handlers()] == [logging.INFO]


def test_composer_reads_level_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("STRATA_logging__level", "error")

    Composer()

    assert logging.getLogger(LOGGER_NAME).level == logging.ERROR
