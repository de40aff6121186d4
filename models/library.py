from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.features import ImageFeatures
from utils.export_naming import derive_split_export_name

PairStatus = Literal["auto", "manual"]
PairReason = Literal["high match", "borderline", "manual"]


def pair_id(first_image_id: str, second_image_id: str) -> str:
    """Order-independent pair id: the two image ids sorted and joined by `__`."""
    low, high = sorted((first_image_id, second_image_id))
    return f"{low}__{high}"


class LibraryImage(BaseModel):
    """A decoded screenshot with its extracted features.

    `path` is the opaque reference handed back to the editor, stored
    **relative to `settings.library_dir`** when the file lives inside it.
    In-memory images have no path.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    file_name: str
    path: Path | None = None
    features: ImageFeatures


class LibraryPair(BaseModel):
    """A dark/light pairing of two library images.

    `completed_at` is set once the pair has been finished in the editor and is
    carried through every recomputation verbatim. Naive datetimes are treated
    as UTC.
    """

    id: str
    dark_image: LibraryImage
    light_image: LibraryImage
    score: float = Field(ge=0.0, le=1.0)
    status: PairStatus
    reason: PairReason
    completed_at: datetime | None = None

    @field_validator("completed_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        # After parsing, so offset-less ISO strings from session.json are covered too
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def image_ids(self) -> tuple[str, str]:
        return self.dark_image.id, self.light_image.id

    @property
    def export_base_name(self) -> str | None:
        """Shared file-name stem used when exporting the split image."""
        return derive_split_export_name(self.light_image.file_name, self.dark_image.file_name)


class ReviewItem(BaseModel):
    """A borderline pair waiting for a human accept/reject."""

    id: str
    pair: LibraryPair
    reason: Literal["borderline"] = "borderline"


class LibrarySession(BaseModel):
    """Images plus their current partition into pairs, review items and unmatched.

    Every image id sits in exactly one bucket. The invariants are checked on
    construction, so a session loaded from corrupt JSON fails validation
    instead of leaking an inconsistent state.
    """

    images: list[LibraryImage] = Field(default_factory=list)
    pairs: list[LibraryPair] = Field(default_factory=list)
    review_pairs: list[ReviewItem] = Field(default_factory=list)
    unmatched_image_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_partition(self) -> "LibrarySession":
        image_ids = [image.id for image in self.images]
        if len(set(image_ids)) != len(image_ids):
            raise ValueError("image ids must be unique")

        pair_ids = [p.id for p in self.pairs] + [r.id for r in self.review_pairs]
        if len(set(pair_ids)) != len(pair_ids):
            raise ValueError("pair ids must be unique across pairs and review_pairs")

        claimed: list[str] = []
        for pair in self.pairs:
            claimed.extend(pair.image_ids)
        for review in self.review_pairs:
            claimed.extend(review.pair.image_ids)
        claimed.extend(self.unmatched_image_ids)

        if len(set(claimed)) != len(claimed):
            raise ValueError("an image id appears in more than one pair/review/unmatched slot")
        if set(claimed) != set(image_ids):
            missing = sorted(set(image_ids) - set(claimed))
            unknown = sorted(set(claimed) - set(image_ids))
            raise ValueError(
                f"images and buckets disagree (unassigned: {missing}, unknown: {unknown})"
            )
        return self

    def image_by_id(self, image_id: str) -> LibraryImage | None:
        return next((i for i in self.images if i.id == image_id), None)

    def pair_by_id(self, item_id: str) -> LibraryPair | None:
        return next((p for p in self.pairs if p.id == item_id), None)

    def review_by_id(self, review_id: str) -> ReviewItem | None:
        return next((r for r in self.review_pairs if r.id == review_id), None)
