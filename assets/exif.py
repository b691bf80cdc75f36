"""
EXIF tag access restricted to the editable allow-list.

Tags are read and written with Pillow's ``Image.Exif``. Values are exchanged
as strings at the API boundary and coerced here before they touch the file.
"""

import logging
import os
from datetime import datetime
from fractions import Fraction
from typing import Dict, Optional, Union

from PIL import ExifTags, Image

from .errors import ExifWriteError, InvalidExifValueError, ValidationError

logger = logging.getLogger(__name__)

EDITABLE_EXIF_FIELDS = (
    'make',
    'model',
    'date_time_original',
    'iso',
    'f_number',
    'exposure',
    'focal_length',
    'gps_latitude',
    'gps_longitude',
    'software',
)

EXIF_DATETIME_FORMAT = '%Y:%m:%d %H:%M:%S'

# field -> tag in the primary IFD
BASE_TAGS = {
    'make': ExifTags.Base.Make,
    'model': ExifTags.Base.Model,
    'software': ExifTags.Base.Software,
    'orientation': ExifTags.Base.Orientation,
}

# field -> tag in the Exif sub-IFD
EXIF_IFD_TAGS = {
    'date_time_original': ExifTags.Base.DateTimeOriginal,
    'iso': ExifTags.Base.ISOSpeedRatings,
    'f_number': ExifTags.Base.FNumber,
    'exposure': ExifTags.Base.ExposureTime,
    'focal_length': ExifTags.Base.FocalLength,
}

# field -> (value tag, reference tag, negative reference) in the GPS sub-IFD
GPS_TAGS = {
    'gps_latitude': (ExifTags.GPS.GPSLatitude, ExifTags.GPS.GPSLatitudeRef, 'S'),
    'gps_longitude': (ExifTags.GPS.GPSLongitude, ExifTags.GPS.GPSLongitudeRef, 'W'),
}

GPS_LIMITS = {
    'gps_latitude': 90.0,
    'gps_longitude': 180.0,
}


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{float(value):.6f}".rstrip('0').rstrip('.')


def _format_exposure(value: float) -> str:
    value = float(value)
    if 0 < value < 1:
        inverse = 1 / value
        if abs(inverse - round(inverse)) < 1e-6:
            return f"1/{int(round(inverse))}"
    return _format_number(value)


def _text(value) -> str:
    if isinstance(value, bytes):
        value = value.decode('utf-8', 'replace')
    return str(value).strip('\x00').strip()


def _first(value):
    if isinstance(value, (tuple, list)):
        return value[0] if value else None
    return value


def _dms_to_decimal(dms, ref) -> float:
    degrees, minutes, seconds = (float(part) for part in dms)
    decimal = degrees + minutes / 60 + seconds / 3600
    if _text(ref or '').upper() in ('S', 'W'):
        decimal = -decimal
    return decimal


def _decimal_to_dms(value: float):
    value = abs(value)
    degrees = int(value)
    minutes_full = (value - degrees) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60, 4)
    return (float(degrees), float(minutes), seconds)


def read_tags(source: Union[str, Image.Image]) -> Dict[str, str]:
    """
    Read the allow-listed EXIF tags.

    Args:
        source: Image path or an already opened Pillow image

    Returns:
        Dict of field name -> string value, absent tags omitted
    """
    if isinstance(source, Image.Image):
        return _read_from_image(source)
    with Image.open(source) as img:
        return _read_from_image(img)


def _read_from_image(img: Image.Image) -> Dict[str, str]:
    exif = img.getexif()
    tags: Dict[str, str] = {}

    for name, tag in BASE_TAGS.items():
        value = exif.get(tag)
        if value is not None:
            tags[name] = _text(value)

    exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
    for name, tag in EXIF_IFD_TAGS.items():
        value = _first(exif_ifd.get(tag))
        if value is None:
            continue
        try:
            if name == 'date_time_original':
                tags[name] = _text(value)
            elif name == 'iso':
                tags[name] = str(int(value))
            elif name == 'exposure':
                tags[name] = _format_exposure(value)
            else:
                tags[name] = _format_number(float(value))
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug(f"Unreadable EXIF value for {name}: {e}")

    gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)
    for name, (tag, ref_tag, _) in GPS_TAGS.items():
        value = gps_ifd.get(tag)
        if value is None:
            continue
        try:
            tags[name] = _format_number(round(_dms_to_decimal(value, gps_ifd.get(ref_tag)), 6))
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug(f"Unreadable GPS value for {name}: {e}")

    return tags


def _parse_number(name: str, value: str) -> float:
    try:
        if '/' in value:
            return float(Fraction(value.strip()))
        return float(value)
    except (ValueError, ZeroDivisionError):
        raise InvalidExifValueError(f"{name} must be numeric, got {value!r}")


def validate_tags(tags: dict) -> Dict[str, Optional[Union[str, int, float]]]:
    """
    Check an edit request against the allow-list and coerce its values.

    Args:
        tags: Field name -> string value, or None to clear the field

    Returns:
        Field name -> coerced value (None still meaning "clear")
    """
    if not isinstance(tags, dict) or not tags:
        raise ValidationError("EXIF update must be a non-empty object")

    unknown = sorted(set(tags) - set(EDITABLE_EXIF_FIELDS))
    if unknown:
        raise ValidationError(f"Unsupported EXIF fields: {', '.join(unknown)}", details=unknown)

    coerced = {}
    for name, raw in tags.items():
        if raw is None:
            coerced[name] = None
            continue
        if not isinstance(raw, str):
            raise ValidationError(f"{name} must be a string or null")
        value = raw.strip()

        if name == 'iso':
            try:
                iso = int(value)
            except ValueError:
                raise InvalidExifValueError(f"iso must be an integer, got {raw!r}")
            if iso < 0 or iso > 65535:
                raise InvalidExifValueError(f"iso out of range: {iso}")
            coerced[name] = iso
        elif name in ('f_number', 'focal_length', 'exposure'):
            number = _parse_number(name, value)
            if number <= 0:
                raise InvalidExifValueError(f"{name} must be positive, got {raw!r}")
            coerced[name] = number
        elif name in GPS_LIMITS:
            number = _parse_number(name, value)
            limit = GPS_LIMITS[name]
            if not -limit <= number <= limit:
                raise InvalidExifValueError(f"{name} must be within [-{limit:g}, {limit:g}], got {raw!r}")
            coerced[name] = number
        elif name == 'date_time_original':
            try:
                datetime.strptime(value, EXIF_DATETIME_FORMAT)
            except ValueError:
                raise InvalidExifValueError(
                    f"date_time_original must look like 2024:01:31 13:45:00, got {raw!r}")
            coerced[name] = value
        else:
            coerced[name] = value

    return coerced


def write_tags(path: str, tags: dict) -> Dict[str, Optional[str]]:
    """
    Write tags into the image file in place.

    The file is rewritten through a sibling temp file and ``os.replace`` so a
    failed write leaves the original untouched. The file bytes change, so the
    caller must recompute hash and size.

    Args:
        path: Image to rewrite
        tags: Field name -> string value or None to clear

    Returns:
        The tags as read back from the rewritten file
    """
    coerced = validate_tags(tags)
    tmp_path = f"{path}.exif-tmp"

    try:
        with Image.open(path) as img:
            img.load()
            fmt = img.format
            exif = img.getexif()
            exif_ifd = dict(exif.get_ifd(ExifTags.IFD.Exif))
            gps_ifd = dict(exif.get_ifd(ExifTags.IFD.GPSInfo))

            for name, value in coerced.items():
                if name in BASE_TAGS:
                    _assign(exif, BASE_TAGS[name], value)
                elif name in EXIF_IFD_TAGS:
                    _assign(exif_ifd, EXIF_IFD_TAGS[name], value)
                else:
                    tag, ref_tag, negative_ref = GPS_TAGS[name]
                    if value is None:
                        gps_ifd.pop(tag, None)
                        gps_ifd.pop(ref_tag, None)
                    else:
                        positive_ref = 'N' if name == 'gps_latitude' else 'E'
                        gps_ifd[ref_tag] = negative_ref if value < 0 else positive_ref
                        gps_ifd[tag] = _decimal_to_dms(value)

            _attach(exif, ExifTags.IFD.Exif, exif_ifd)
            _attach(exif, ExifTags.IFD.GPSInfo, gps_ifd)

            save_kwargs = {'exif': exif.tobytes()}
            if fmt == 'JPEG':
                save_kwargs['quality'] = 'keep'
            if img.info.get('icc_profile'):
                save_kwargs['icc_profile'] = img.info['icc_profile']
            img.save(tmp_path, format=fmt, **save_kwargs)

        os.replace(tmp_path, path)
    except (OSError, ValueError, KeyError, TypeError) as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        logger.error(f"Failed to write EXIF tags to {path}: {e}")
        raise ExifWriteError("Failed to write EXIF metadata")

    return read_tags(path)


def _assign(container, tag, value) -> None:
    if value is None:
        container.pop(tag, None)
    else:
        container[tag] = value


def _attach(exif: Image.Exif, ifd_tag, values: dict) -> None:
    if values:
        exif[ifd_tag] = values
    else:
        exif.pop(ifd_tag, None)
