"""Feature record computed once per screenshot.

All grids share one fixed geometry so that any two records are comparable:
the thumbnail and edge map are THUMBNAIL_SIZE x THUMBNAIL_SIZE, and the edge
hash is always EDGE_HASH_BITS long regardless of the source resolution.
"""
import math

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

THUMBNAIL_SIZE = 96
EDGE_HASH_GRID_SIZE = 16
EDGE_HASH_BITS = EDGE_HASH_GRID_SIZE * EDGE_HASH_GRID_SIZE
EDGE_HASH_BYTES = EDGE_HASH_BITS // 8


class ImageFeatures(BaseModel):
    """Luminance summary, thumbnail grids and edge hash of one image.

    `width`/`height` are the source dimensions. The thumbnail and edge map are
    row-major square byte grids of the same side length (THUMBNAIL_SIZE unless
    the library is configured otherwise). Both may be left empty when only the
    hash is kept. The edge hash is packed MSB-first. Byte fields are
    base64-encoded in JSON.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    aspect_ratio: float = Field(gt=0.0)
    mean_luminance: float = Field(ge=0.0, le=255.0)
    grayscale_thumbnail: bytes
    edge_map: bytes
    edge_hash: bytes

    @field_validator("edge_hash")
    @classmethod
    def edge_hash_has_fixed_length(cls, v: bytes) -> bytes:
        if len(v) != EDGE_HASH_BYTES:
            raise ValueError(f"edge_hash must be exactly {EDGE_HASH_BYTES} bytes, got {len(v)}")
        return v

    @model_validator(mode="after")
    def grids_are_matching_squares(self) -> "ImageFeatures":
        size = len(self.grayscale_thumbnail)
        if len(self.edge_map) != size:
            raise ValueError(
                f"edge_map ({len(self.edge_map)} bytes) and grayscale_thumbnail "
                f"({size} bytes) must cover the same grid"
            )
        if math.isqrt(size) ** 2 != size:
            raise ValueError(f"thumbnail grids must be square, got {size} bytes")
        return self
