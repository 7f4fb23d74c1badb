"""Device-independent texture descriptions."""

from enum import Enum


class Filter(Enum):
    NEAREST = 'nearest'
    LINEAR =  'linear'


class TextureFormat(Enum):
    """Render texture formats as (channels, bits per channel)."""
    R16F =      (1, 16)
    RG16F =     (2, 16)
    RGBA16F =   (4, 16)
    R32F =      (1, 32)
    RG32F =     (2, 32)
    RGBA32F =   (4, 32)
    RGBA8 =     (4, 8)

    @property
    def channels(self) -> int:
        return self.value[0]

    @property
    def bits(self) -> int:
        return self.value[1]

    @property
    def is_float(self) -> bool:
        return self.bits >= 16


# Next wider format to try when a format is not renderable
FORMAT_FALLBACK: dict[TextureFormat, TextureFormat] = {
    TextureFormat.R16F:  TextureFormat.RG16F,
    TextureFormat.RG16F: TextureFormat.RGBA16F,
    TextureFormat.R32F:  TextureFormat.RG32F,
    TextureFormat.RG32F: TextureFormat.RGBA32F,
}

HALF_FLOAT_TIER: tuple[TextureFormat, TextureFormat, TextureFormat] = (
    TextureFormat.R16F, TextureFormat.RG16F, TextureFormat.RGBA16F)
FLOAT_TIER: tuple[TextureFormat, TextureFormat, TextureFormat] = (
    TextureFormat.R32F, TextureFormat.RG32F, TextureFormat.RGBA32F)
