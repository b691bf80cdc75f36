"""
AssetMetadata - Descriptive and EXIF attributes of a stored image.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional


@dataclass
class AssetMetadata:
    """
    Descriptive metadata for an asset.

    Every declared field is independently optional. Keys that are not
    declared (arbitrary client annotations) are kept in ``extra`` so the
    stored map stays open.

    Attributes:
        width, height: Pixel dimensions
        format: Codec name reported by Pillow (JPEG, PNG, TIFF, ...)
        mode: Pillow color mode
        has_alpha: True if the image carries an alpha channel
        orientation .. software: EXIF tags, stored as strings
        extra: Undeclared keys
    """
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    mode: Optional[str] = None
    has_alpha: Optional[bool] = None
    orientation: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    date_time_original: Optional[str] = None
    iso: Optional[str] = None
    f_number: Optional[str] = None
    exposure: Optional[str] = None
    focal_length: Optional[str] = None
    gps_latitude: Optional[str] = None
    gps_longitude: Optional[str] = None
    software: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def declared_keys(cls) -> set:
        return {f.name for f in fields(cls) if f.name != 'extra'}

    def to_dict(self) -> dict:
        """Flatten to a JSON-safe dict, omitting unset fields."""
        data = dict(self.extra)
        for name in self.declared_keys():
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'AssetMetadata':
        if not data:
            return cls()
        declared = cls.declared_keys()
        known = {k: v for k, v in data.items() if k in declared}
        extra = {k: v for k, v in data.items() if k not in declared}
        return cls(extra=extra, **known)

    def merged(self, other: 'AssetMetadata') -> 'AssetMetadata':
        """Return a copy with the non-null values of ``other`` applied on top."""
        updates = {
            name: getattr(other, name)
            for name in self.declared_keys()
            if getattr(other, name) is not None
        }
        merged = replace(self, **updates)
        merged.extra = {**self.extra, **other.extra}
        return merged

    def with_exif(self, tags: Dict[str, Optional[str]]) -> 'AssetMetadata':
        """Return a copy with EXIF tag values set; None clears a field."""
        declared = self.declared_keys()
        updates = {k: v for k, v in tags.items() if k in declared}
        return replace(self, extra=dict(self.extra), **updates)
