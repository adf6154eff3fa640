"""Tests for upright.ui module."""

import logging

from rich.progress import Progress

from upright.ui import create_progress, setup_logging


def test_create_progress():
    progress = create_progress()
    assert isinstance(progress, Progress)
    task = progress.add_task("work", total=2)
    progress.advance(task)
    assert progress.tasks[0].completed == 1


def test_setup_logging_does_not_raise():
    setup_logging(verbose=True)
    logging.getLogger("upright").debug("hello")
