"""
Pytest fixtures for asset pipeline tests.
"""

import logging
import os

import pytest

from assets.naming import staging_filename
from assets.tests.fakes import InMemoryAssetDb, gradient_bytes, image_bytes


@pytest.fixture
def logger():
    """Fixture providing a test logger."""
    return logging.getLogger('test')


@pytest.fixture
def storage_root(tmp_path):
    """Fixture providing an empty storage root."""
    root = tmp_path / 'storage'
    root.mkdir()
    return str(root)


@pytest.fixture
def staging_dir(tmp_path):
    """Fixture providing the upload staging directory."""
    path = tmp_path / 'staging'
    path.mkdir()
    return str(path)


@pytest.fixture
def catalog():
    """Fixture providing an empty in-memory catalog."""
    return InMemoryAssetDb()


@pytest.fixture
def processor(logger):
    """Fixture providing a real AssetProcessor."""
    from assets.processor import AssetProcessor
    return AssetProcessor(logger=logger)


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes."""
    return image_bytes('red', (100, 100))


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    return image_bytes((255, 0, 0, 128), (100, 100), fmt='PNG', mode='RGBA')


@pytest.fixture
def sample_gradient_bytes():
    """Fixture providing a non-uniform 120x80 JPEG."""
    return gradient_bytes()


@pytest.fixture
def stage(staging_dir):
    """Fixture providing a function that writes bytes into the staging area."""
    def _stage(data, original_name='photo.jpg'):
        path = os.path.join(staging_dir, staging_filename(original_name))
        with open(path, 'wb') as f:
            f.write(data)
        return path
    return _stage


@pytest.fixture
def ingest_pipeline(catalog, processor, storage_root, logger):
    from assets.ingest import IngestPipeline
    return IngestPipeline(catalog, processor, storage_root, logger=logger)


@pytest.fixture
def crop_pipeline(catalog, processor, storage_root, logger):
    from assets.crop import CropPipeline
    return CropPipeline(catalog, processor, storage_root, logger=logger)


@pytest.fixture
def editor(catalog, processor, storage_root, logger):
    from assets.editing import AssetEditor
    return AssetEditor(catalog, processor, storage_root, logger=logger)
