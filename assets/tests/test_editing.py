"""Tests for AssetEditor."""

import os

import pytest
from PIL import Image

from assets.errors import (
    AlreadyDeletedError,
    AssetNotFoundError,
    CatalogError,
    DuplicateAssetError,
    ExifWriteError,
    InvalidExifValueError,
    RelocationError,
    ValidationError,
)
from assets.hasher import hash_file
from assets.naming import preview_path_for
from assets.tests.fakes import gradient_bytes, image_bytes, list_files

MISSING_ID = '00000000-0000-0000-0000-000000000000'


@pytest.fixture
def asset(ingest_pipeline, stage, sample_gradient_bytes):
    return ingest_pipeline.ingest(stage(sample_gradient_bytes), 'beetle.jpg', 'image/jpeg')


class TestGet:
    """Tests for get."""

    def test_found(self, editor, asset):
        assert editor.get(asset.id) == asset

    def test_missing(self, editor):
        with pytest.raises(AssetNotFoundError):
            editor.get(MISSING_ID)

    def test_deleted_hidden(self, editor, catalog, asset):
        catalog.soft_delete(asset.id)

        with pytest.raises(AssetNotFoundError):
            editor.get(asset.id)


class TestUpdate:
    """Tests for update."""

    def test_merge_metadata(self, editor, asset):
        """Test supplied keys are merged over the stored metadata."""
        updated = editor.update(asset.id, metadata={'catalog_number': 'CAS-42', 'make': 'Leica'})

        assert updated.metadata.extra['catalog_number'] == 'CAS-42'
        assert updated.metadata.make == 'Leica'
        assert updated.metadata.width == 120
        assert updated.updated_at >= asset.updated_at

    def test_move_folder(self, editor, asset, storage_root):
        """Test a folder change moves the original and the thumbnail."""
        updated = editor.update(asset.id, folder='archive')

        assert updated.folder == 'archive'
        assert updated.absolute_path == os.path.join(storage_root, 'archive', asset.stored_filename)
        assert os.path.exists(updated.absolute_path)
        assert os.path.exists(updated.thumbnail_path)
        assert not os.path.exists(asset.absolute_path)
        assert not os.path.exists(asset.thumbnail_path)

    def test_same_folder_is_noop_move(self, editor, asset):
        updated = editor.update(asset.id, folder='default')

        assert updated.absolute_path == asset.absolute_path

    def test_catalog_failure_undoes_move(self, editor, catalog, asset):
        catalog.fail_with = CatalogError('database unavailable')

        with pytest.raises(CatalogError):
            editor.update(asset.id, folder='archive')

        assert os.path.exists(asset.absolute_path)
        assert os.path.exists(asset.thumbnail_path)

    def test_target_exists(self, editor, asset, storage_root):
        target = os.path.join(storage_root, 'archive', asset.stored_filename)
        os.makedirs(os.path.dirname(target))
        with open(target, 'wb') as f:
            f.write(b'occupied')

        with pytest.raises(RelocationError):
            editor.update(asset.id, folder='archive')

        assert os.path.exists(asset.absolute_path)

    @pytest.mark.parametrize('kwargs', [
        {},
        {'metadata': ['not', 'a', 'dict']},
        {'folder': 'bad folder'},
    ])
    def test_invalid_requests(self, editor, asset, kwargs):
        with pytest.raises(ValidationError):
            editor.update(asset.id, **kwargs)

    def test_missing(self, editor):
        with pytest.raises(AssetNotFoundError):
            editor.update(MISSING_ID, metadata={'a': 1})


class TestUpdateExif:
    """Tests for update_exif."""

    def test_writes_tags_and_refreshes_record(self, editor, catalog, asset):
        """Test the file, hash, size and metadata all change together."""
        updated = editor.update_exif(asset.id, {'make': 'Canon', 'iso': '200'})

        assert updated.metadata.make == 'Canon'
        assert updated.metadata.iso == '200'
        assert updated.content_hash != asset.content_hash
        assert updated.content_hash == hash_file(updated.absolute_path)
        assert updated.size_bytes == os.path.getsize(updated.absolute_path)
        assert catalog.get_asset(asset.id) == updated

    def test_clearing_tag(self, editor, asset):
        editor.update_exif(asset.id, {'make': 'Canon', 'model': 'R5'})

        updated = editor.update_exif(asset.id, {'make': None})

        assert updated.metadata.make is None
        assert updated.metadata.model == 'R5'

    def test_no_working_files_left(self, editor, asset, storage_root):
        files_before = list_files(storage_root)

        editor.update_exif(asset.id, {'software': 'scanner 2.0'})

        assert list_files(storage_root) == files_before

    def test_invalid_value(self, editor, asset):
        with pytest.raises(InvalidExifValueError):
            editor.update_exif(asset.id, {'gps_latitude': '95'})

        assert hash_file(asset.absolute_path) == asset.content_hash

    def test_write_failure(self, editor, asset, storage_root, mocker):
        """Test a failed write leaves the stored file and record unchanged."""
        files_before = list_files(storage_root)
        mocker.patch('assets.exif.write_tags', side_effect=ExifWriteError('cannot encode'))

        with pytest.raises(ExifWriteError):
            editor.update_exif(asset.id, {'make': 'Canon'})

        assert list_files(storage_root) == files_before
        assert hash_file(asset.absolute_path) == asset.content_hash
        assert editor.get(asset.id).content_hash == asset.content_hash

    def test_catalog_failure_restores_original(self, editor, catalog, asset):
        catalog.fail_with = CatalogError('database unavailable')

        with pytest.raises(CatalogError):
            editor.update_exif(asset.id, {'make': 'Canon'})

        assert hash_file(asset.absolute_path) == asset.content_hash

    def test_edit_collides_with_other_asset(self, editor, asset, mocker):
        mocker.patch.object(editor.catalog, 'find_live_by_hash', return_value=mocker.Mock(id='other-id'))

        with pytest.raises(DuplicateAssetError) as exc_info:
            editor.update_exif(asset.id, {'make': 'Canon'})

        assert exc_info.value.existing_id == 'other-id'
        assert hash_file(asset.absolute_path) == asset.content_hash


class TestPreview:
    """Tests for preview_for."""

    def test_jpeg_served_directly(self, editor, asset):
        assert editor.preview_for(asset) == asset.absolute_path

    def test_tiff_rendered_once(self, editor, ingest_pipeline, stage, processor, mocker):
        """Test a TIFF gets a cached WebP preview."""
        tiff = ingest_pipeline.ingest(stage(image_bytes('green', (40, 30), fmt='TIFF'), 'scan.tif'),
                                      'scan.tif', 'image/tiff')
        render = mocker.spy(processor, 'render_preview')

        first = editor.preview_for(tiff)
        second = editor.preview_for(tiff)

        assert first == second == preview_path_for(tiff.absolute_path)
        assert render.call_count == 1
        with Image.open(first) as img:
            assert img.format == 'WEBP'
            assert img.size == (40, 30)


class TestDelete:
    """Tests for delete and delete_many."""

    def test_soft_delete(self, editor, catalog, asset):
        deleted = editor.delete(asset.id)

        assert deleted.is_deleted
        assert catalog.get_asset(asset.id) is None
        assert catalog.get_asset(asset.id, include_deleted=True) is not None
        assert os.path.exists(asset.absolute_path)

    def test_already_deleted(self, editor, asset):
        editor.delete(asset.id)

        with pytest.raises(AlreadyDeletedError):
            editor.delete(asset.id)

    def test_missing(self, editor):
        with pytest.raises(AssetNotFoundError):
            editor.delete(MISSING_ID)

    def test_delete_many(self, editor, ingest_pipeline, stage, asset):
        other = ingest_pipeline.ingest(stage(gradient_bytes(size=(60, 60))), 'b.jpg', 'image/jpeg')

        count = editor.delete_many([asset.id, other.id, asset.id, MISSING_ID])

        assert count == 2

    def test_delete_many_empty(self, editor):
        with pytest.raises(ValidationError):
            editor.delete_many([])
