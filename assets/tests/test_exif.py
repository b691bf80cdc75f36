"""Tests for EXIF reading, validation and writing."""

import pytest
from PIL import ExifTags, Image

from assets import exif
from assets.errors import ExifWriteError, InvalidExifValueError, ValidationError
from assets.hasher import hash_file
from assets.tests.fakes import gradient_bytes


@pytest.fixture
def jpeg_path(tmp_path, sample_gradient_bytes):
    path = tmp_path / 'photo.jpg'
    path.write_bytes(sample_gradient_bytes)
    return str(path)


@pytest.fixture(params=[('JPEG', 'jpg'), ('PNG', 'png'), ('TIFF', 'tif')], ids=lambda p: p[0])
def image_path(request, tmp_path):
    """Fixture providing a gradient image in each writable format."""
    fmt, ext = request.param
    path = tmp_path / f'photo.{ext}'
    path.write_bytes(gradient_bytes(fmt=fmt))
    return str(path)


class TestValidateTags:
    """Tests for validate_tags."""

    def test_coerces_values(self):
        coerced = exif.validate_tags({
            'make': ' Canon ',
            'iso': '400',
            'f_number': '2.8',
            'exposure': '1/125',
            'gps_latitude': '-33.5',
        })

        assert coerced['make'] == 'Canon'
        assert coerced['iso'] == 400
        assert coerced['f_number'] == 2.8
        assert coerced['exposure'] == pytest.approx(0.008)
        assert coerced['gps_latitude'] == -33.5

    def test_none_means_clear(self):
        assert exif.validate_tags({'model': None}) == {'model': None}

    def test_unknown_field(self):
        """Test fields outside the allow-list are refused."""
        with pytest.raises(ValidationError):
            exif.validate_tags({'orientation': '1'})

    def test_empty(self):
        with pytest.raises(ValidationError):
            exif.validate_tags({})

    def test_non_string_value(self):
        with pytest.raises(ValidationError):
            exif.validate_tags({'iso': 400})

    @pytest.mark.parametrize('tags', [
        {'iso': 'fast'},
        {'iso': '70000'},
        {'f_number': '0'},
        {'exposure': '1/0'},
        {'focal_length': '-5'},
        {'gps_latitude': '91'},
        {'gps_longitude': '-180.5'},
        {'date_time_original': '2024-01-31 13:45:00'},
    ])
    def test_invalid_values(self, tags):
        with pytest.raises(InvalidExifValueError):
            exif.validate_tags(tags)

    def test_valid_date(self):
        assert exif.validate_tags({'date_time_original': '2024:01:31 13:45:00'}) == {
            'date_time_original': '2024:01:31 13:45:00'
        }


class TestWriteTags:
    """Tests for write_tags."""

    def test_round_trip(self, jpeg_path):
        """Test written tags read back with the same values."""
        tags = exif.write_tags(jpeg_path, {
            'make': 'Canon',
            'model': 'EOS R5',
            'software': 'asset-server',
            'iso': '400',
            'f_number': '2.8',
            'exposure': '1/125',
        })

        assert tags['make'] == 'Canon'
        assert tags['model'] == 'EOS R5'
        assert tags['software'] == 'asset-server'
        assert tags['iso'] == '400'
        assert tags['f_number'] == '2.8'
        assert tags['exposure'] == '1/125'
        assert exif.read_tags(jpeg_path) == tags

    @pytest.mark.parametrize('latitude,longitude', [
        ('-33.5', '151.25'),
        ('12.75', '-0.5'),
    ])
    def test_gps_round_trip(self, image_path, latitude, longitude):
        """Test signed decimal coordinates survive the DMS and hemisphere encoding."""
        tags = exif.write_tags(image_path, {'gps_latitude': latitude, 'gps_longitude': longitude})

        assert tags['gps_latitude'] == latitude
        assert tags['gps_longitude'] == longitude

    def test_gps_hemisphere_refs(self, jpeg_path):
        exif.write_tags(jpeg_path, {'gps_latitude': '-33.5', 'gps_longitude': '151.25'})

        with Image.open(jpeg_path) as img:
            gps = img.getexif().get_ifd(ExifTags.IFD.GPSInfo)

        assert gps[ExifTags.GPS.GPSLatitudeRef] == 'S'
        assert gps[ExifTags.GPS.GPSLongitudeRef] == 'E'
        assert [float(part) for part in gps[ExifTags.GPS.GPSLatitude]] == [33.0, 30.0, 0.0]

    def test_gps_clear(self, jpeg_path):
        exif.write_tags(jpeg_path, {'gps_latitude': '10', 'gps_longitude': '20'})

        tags = exif.write_tags(jpeg_path, {'gps_latitude': None})

        assert 'gps_latitude' not in tags
        assert tags['gps_longitude'] == '20'

    def test_other_formats_keep_pixels(self, image_path):
        """Test rewriting EXIF keeps the format and the decoded pixels."""
        with Image.open(image_path) as img:
            fmt, pixels = img.format, img.convert('RGB').tobytes()

        tags = exif.write_tags(image_path, {'make': 'Canon', 'iso': '800'})

        assert tags['make'] == 'Canon'
        assert tags['iso'] == '800'
        with Image.open(image_path) as img:
            assert img.format == fmt
            if fmt != 'JPEG':
                assert img.convert('RGB').tobytes() == pixels

    def test_clear_field(self, jpeg_path):
        exif.write_tags(jpeg_path, {'make': 'Canon', 'model': 'EOS R5'})

        tags = exif.write_tags(jpeg_path, {'make': None})

        assert 'make' not in tags
        assert tags['model'] == 'EOS R5'

    def test_file_bytes_change(self, jpeg_path):
        """Test writing tags changes the content hash."""
        before = hash_file(jpeg_path)

        exif.write_tags(jpeg_path, {'make': 'Nikon'})

        assert hash_file(jpeg_path) != before

    def test_invalid_value_leaves_file(self, jpeg_path):
        before = hash_file(jpeg_path)

        with pytest.raises(InvalidExifValueError):
            exif.write_tags(jpeg_path, {'iso': 'abc'})

        assert hash_file(jpeg_path) == before

    def test_unwritable_file(self, tmp_path):
        """Test a file that is not an image raises ExifWriteError and leaves no temp file."""
        path = tmp_path / 'broken.jpg'
        path.write_bytes(b'not an image')

        with pytest.raises(ExifWriteError):
            exif.write_tags(str(path), {'make': 'Canon'})

        assert sorted(p.name for p in tmp_path.iterdir()) == ['broken.jpg']


class TestReadTags:
    """Tests for read_tags."""

    def test_no_exif(self, jpeg_path):
        assert exif.read_tags(jpeg_path) == {}
