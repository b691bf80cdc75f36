"""
AssetProcessor - Image decoding, thumbnailing and pixel operations.
"""

import logging
import os
from typing import Optional, Tuple

from PIL import Image, ImageOps

from . import exif
from .errors import AssetError, CropError, InvalidCropRegionError, InvalidImageError, ThumbnailGenerationError
from .metadata import AssetMetadata
from .storage import delete_if_exists, ensure_dir

DECODE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)

# Pillow reports some camera JPEGs as MPO; they are written back as plain JPEG
SAVE_FORMATS = {
    'MPO': 'JPEG',
}


class AssetProcessor:
    """
    Wraps Pillow for the operations the pipelines need.

    The processor is stateless apart from its configuration; it can be shared
    between requests.
    """

    def __init__(
        self,
        thumbnail_size: Tuple[int, int] = (300, 300),
        quality: int = 80,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the processor.

        Args:
            thumbnail_size: (width, height) of generated thumbnails (default: 300x300)
            quality: WebP quality for thumbnails (default: 80)
            logger: Optional logger instance
        """
        self.thumbnail_size = thumbnail_size
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)

    def validate_and_extract_metadata(self, path: str) -> AssetMetadata:
        """
        Fully decode the image and collect its descriptive metadata.

        Args:
            path: Image on disk

        Returns:
            AssetMetadata with dimensions, format, mode and EXIF tags

        Raises:
            InvalidImageError: If the file cannot be decoded
        """
        try:
            with Image.open(path) as img:
                img.load()
                metadata = AssetMetadata(
                    width=img.width,
                    height=img.height,
                    format=img.format,
                    mode=img.mode,
                    has_alpha=self._has_alpha(img),
                )
                tags = exif.read_tags(img)
        except DECODE_ERRORS as e:
            self.logger.warning(f"Rejected undecodable image {path}: {e}")
            raise InvalidImageError("File is not a readable image")

        return metadata.with_exif(tags)

    def generate_thumbnail(
        self,
        source: str,
        dest: str,
        width: Optional[int] = None,
        height: Optional[int] = None
    ) -> str:
        """
        Write a cover-fit, center-cropped WebP thumbnail.

        Overwrites ``dest`` if it exists, so repeated calls are idempotent.

        Args:
            source: Original image
            dest: Thumbnail path
            width: Override for the configured thumbnail width
            height: Override for the configured thumbnail height

        Returns:
            The thumbnail path
        """
        size = (width or self.thumbnail_size[0], height or self.thumbnail_size[1])
        try:
            ensure_dir(os.path.dirname(dest))
            with Image.open(source) as img:
                img = self._convert_color_mode(img)
                thumb = ImageOps.fit(
                    img,
                    size,
                    method=Image.Resampling.LANCZOS,
                    centering=(0.5, 0.5),
                )
                thumb.save(dest, format='WEBP', quality=self.quality)
        except DECODE_ERRORS as e:
            delete_if_exists(dest)
            self.logger.error(f"Error generating thumbnail for {source}: {e}")
            raise ThumbnailGenerationError("Failed to generate thumbnail")

        self.logger.debug(f"Thumbnail {size[0]}x{size[1]} written to {dest}")
        return dest

    def crop_to_file(self, source: str, dest: str, box) -> str:
        """
        Extract a rectangle of the source into a new file of the same format.

        Args:
            source: Original image
            dest: Output path
            box: Object with integer x, y, width, height

        Raises:
            InvalidCropRegionError: If the rectangle leaves the image bounds
            CropError: If decoding or encoding fails
        """
        try:
            ensure_dir(os.path.dirname(dest))
            with Image.open(source) as img:
                if box.x + box.width > img.width or box.y + box.height > img.height:
                    raise InvalidCropRegionError(
                        f"Crop region {box.width}x{box.height}+{box.x}+{box.y} "
                        f"exceeds image bounds {img.width}x{img.height}")

                fmt = SAVE_FORMATS.get(img.format, img.format)
                save_kwargs = {}
                if img.info.get('exif'):
                    save_kwargs['exif'] = img.info['exif']
                if img.info.get('icc_profile'):
                    save_kwargs['icc_profile'] = img.info['icc_profile']
                if fmt == 'JPEG':
                    save_kwargs['quality'] = 95

                region = img.crop((box.x, box.y, box.x + box.width, box.y + box.height))
                region.save(dest, format=fmt, **save_kwargs)
        except InvalidCropRegionError:
            raise
        except DECODE_ERRORS as e:
            delete_if_exists(dest)
            self.logger.error(f"Error cropping {source}: {e}")
            raise CropError("Failed to crop image")

        return dest

    def render_preview(self, source: str, dest: str) -> str:
        """Convert an image browsers cannot display into a lossless WebP."""
        try:
            ensure_dir(os.path.dirname(dest))
            with Image.open(source) as img:
                img = self._convert_color_mode(img)
                img.save(dest, format='WEBP', lossless=True)
        except DECODE_ERRORS as e:
            delete_if_exists(dest)
            self.logger.error(f"Error rendering preview for {source}: {e}")
            raise AssetError("Failed to render preview", code='PREVIEW_FAILED')

        self.logger.info(f"Rendered preview {dest}")
        return dest

    @staticmethod
    def _has_alpha(img: Image.Image) -> bool:
        return img.mode in ('RGBA', 'LA', 'PA') or 'transparency' in img.info

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Convert to a mode the WebP encoder accepts, keeping transparency."""
        if img.mode in ('RGB', 'RGBA'):
            return img
        if img.mode in ('LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info):
            return img.convert('RGBA')
        return img.convert('RGB')
