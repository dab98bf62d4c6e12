import io
import os
from enum import Enum

from PIL import Image, ImageChops, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from .errors import InvalidInputError

IMAGE_MAX_DIM = int(os.getenv("JJ_IMAGE_MAX_DIM", "1800"))
IMAGE_QUALITY = int(os.getenv("JJ_IMAGE_QUALITY", "90"))
TRIM_THRESHOLD = 12


class EnhanceStrength(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# (saturation, brightness, sharpen sigma)
TONE_PRESETS: dict[EnhanceStrength, tuple[float, float, float]] = {
    EnhanceStrength.LOW: (1.05, 1.02, 0.6),
    EnhanceStrength.MEDIUM: (1.12, 1.03, 0.9),
    EnhanceStrength.HIGH: (1.20, 1.05, 1.2),
}


class DeriveOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_dim: int = IMAGE_MAX_DIM
    trim: bool = True
    strength: EnhanceStrength = EnhanceStrength.MEDIUM
    quality: int = IMAGE_QUALITY


def _decode(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        raise InvalidInputError("File is not a decodable image") from exc
    return image


def _trim(image: Image.Image, threshold: int) -> Image.Image:
    background = Image.new(image.mode, image.size, image.getpixel((0, 0)))
    diff = ImageChops.difference(image, background).convert("L")
    mask = diff.point(lambda value: 255 if value > threshold else 0)
    bbox = mask.getbbox()
    if bbox is None or bbox == (0, 0, image.width, image.height):
        return image
    return image.crop(bbox)


def derive_image(data: bytes, options: DeriveOptions | None = None) -> bytes:
    """Produce the enhanced JPEG variant of an uploaded image.

    Steps run in a fixed order: EXIF rotation, fit within ``max_dim`` (never
    upscaling), optional border trim, saturation/brightness boost, unsharp
    mask, JPEG encode. Raises InvalidInputError for undecodable input.
    """
    options = options or DeriveOptions()
    saturation, brightness, sigma = TONE_PRESETS[options.strength]

    image = _decode(data)
    image = ImageOps.exif_transpose(image)
    image = image.convert("RGB")
    image.thumbnail((options.max_dim, options.max_dim), Image.Resampling.LANCZOS)

    if options.trim:
        image = _trim(image, TRIM_THRESHOLD)

    image = ImageEnhance.Color(image).enhance(saturation)
    image = ImageEnhance.Brightness(image).enhance(brightness)
    image = image.filter(ImageFilter.UnsharpMask(radius=sigma, percent=120, threshold=3))

    out = io.BytesIO()
    image.save(out, format="JPEG", quality=options.quality)
    return out.getvalue()
