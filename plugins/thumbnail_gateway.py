import io
import logging
import os
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from core.errors import NotFoundError, ReadError


class PillowThumbnailGateway:
    """Renders bounded, upright JPEG previews with Pillow. Nothing is cached."""

    def __init__(self, quality: int = 85):
        self.quality = quality

    def render_thumbnail(self, path: str, max_width: int, max_height: int,
                         quality: Optional[int] = None) -> bytes:
        if not os.path.isfile(path):
            raise NotFoundError(f"File not found: {path}")
        try:
            with Image.open(path) as img:
                # Rotated captures store pixels sideways plus an Orientation tag.
                img = ImageOps.exif_transpose(img)
                if img.mode not in ('RGB', 'L'):
                    img = img.convert('RGB')
                img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)

                buf = io.BytesIO()
                img.save(buf, 'JPEG', quality=quality or self.quality)
        except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError) as e:
            logging.error(f"Error rendering preview for {path}: {e}")
            raise ReadError(f"Cannot render {path}: {e}") from e

        data = buf.getvalue()
        logging.debug(f"Rendered {max_width}x{max_height} preview for {path} ({len(data)} bytes)")
        return data
