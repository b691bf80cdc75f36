"""
Pytest fixtures for transfer tests.
"""

import logging

import pytest

from assets.tests.fakes import image_bytes
from transfer.progress import TransferObserver


class RecordingObserver(TransferObserver):
    """Observer that keeps every event it receives."""

    def __init__(self):
        self.events = []
        self.completed = []

    def on_progress(self, event):
        self.events.append(event)

    def on_complete(self, event):
        self.completed.append(event)

    @property
    def messages(self):
        return [event.message for event in self.events]


@pytest.fixture
def logger():
    """Fixture providing a test logger."""
    return logging.getLogger('test')


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def photo_dir(tmp_path):
    """Fixture providing a folder with three distinct JPEGs and a text file."""
    folder = tmp_path / 'photos'
    folder.mkdir()
    for name, color in (('a.jpg', 'red'), ('b.JPG', 'green'), ('c.jpg', 'blue')):
        (folder / name).write_bytes(image_bytes(color, (32, 32)))
    (folder / 'notes.txt').write_text('not an image')
    return str(folder)
