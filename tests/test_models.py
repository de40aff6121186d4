"""Tests for Pydantic model validation and JSON round-trips."""
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from models.events import PipelineEvent
from models.features import EDGE_HASH_BYTES, ImageFeatures
from models.library import LibraryImage, LibraryPair, LibrarySession, ReviewItem, pair_id


def round_trip(model_instance):
    """Serialise to JSON and back; assert equality."""
    cls = type(model_instance)
    restored = cls.model_validate_json(model_instance.model_dump_json())
    assert restored == model_instance
    return restored


def _features(
    luminance=40.0,
    edge_hash=None,
    thumbnail=bytes([0, 128, 255, 7]),
    edge_map=bytes([0, 1, 2, 3]),
) -> ImageFeatures:
    return ImageFeatures(
        width=390,
        height=844,
        aspect_ratio=390 / 844,
        mean_luminance=luminance,
        grayscale_thumbnail=thumbnail,
        edge_map=edge_map,
        edge_hash=edge_hash if edge_hash is not None else bytes(range(EDGE_HASH_BYTES)),
    )


def _image(image_id: str, file_name: str | None = None, luminance=40.0) -> LibraryImage:
    return LibraryImage(
        id=image_id,
        file_name=file_name or f"{image_id}.png",
        features=_features(luminance),
    )


def _pair(dark: LibraryImage, light: LibraryImage, **kwargs) -> LibraryPair:
    defaults = dict(
        id=pair_id(dark.id, light.id),
        dark_image=dark,
        light_image=light,
        score=0.9,
        status="auto",
        reason="high match",
    )
    defaults.update(kwargs)
    return LibraryPair(**defaults)


# ---------------------------------------------------------------------------
# ImageFeatures
# ---------------------------------------------------------------------------

class TestImageFeatures:
    def test_round_trip_keeps_bytes(self):
        restored = round_trip(_features())
        assert restored.grayscale_thumbnail == bytes([0, 128, 255, 7])

    def test_bytes_serialised_as_base64(self):
        dumped = _features().model_dump(mode="json")
        assert dumped["edge_map"] == "AAECAw=="

    def test_wrong_hash_length_raises(self):
        with pytest.raises(ValidationError):
            _features(edge_hash=b"\x00" * 8)

    def test_luminance_out_of_range_raises(self):
        with pytest.raises(ValidationError):
            _features(luminance=300.0)

    def test_zero_width_raises(self):
        with pytest.raises(ValidationError):
            ImageFeatures(
                width=0, height=10, aspect_ratio=1.0, mean_luminance=0.0,
                grayscale_thumbnail=b"", edge_map=b"", edge_hash=b"\x00" * EDGE_HASH_BYTES,
            )

    def test_grids_may_be_empty(self):
        features = _features(thumbnail=b"", edge_map=b"")
        assert features.grayscale_thumbnail == b""

    def test_grid_length_mismatch_raises(self):
        with pytest.raises(ValidationError, match="same grid"):
            _features(thumbnail=bytes(9), edge_map=bytes(4))

    @pytest.mark.parametrize("length", [2, 3, 10])
    def test_non_square_grid_raises(self, length):
        with pytest.raises(ValidationError, match="square"):
            _features(thumbnail=bytes(length), edge_map=bytes(length))

    def test_frozen(self):
        features = _features()
        with pytest.raises(ValidationError):
            features.mean_luminance = 10.0


# ---------------------------------------------------------------------------
# LibraryImage / LibraryPair
# ---------------------------------------------------------------------------

class TestLibraryPair:
    def test_pair_id_is_order_independent(self):
        assert pair_id("b", "a") == pair_id("a", "b") == "a__b"

    def test_image_ids_dark_first(self):
        pair = _pair(_image("x", luminance=20.0), _image("a", luminance=200.0))
        assert pair.image_ids == ("x", "a")

    def test_naive_completed_at_converted_to_utc(self):
        pair = _pair(_image("d"), _image("l"), completed_at=datetime(2026, 3, 1, 12, 0))
        assert pair.completed_at.tzinfo == timezone.utc

    def test_offset_less_json_timestamp_converted_to_utc(self):
        payload = _pair(_image("d"), _image("l")).model_dump(mode="json")
        payload["completed_at"] = "2026-03-01T12:00:00"
        pair = LibraryPair.model_validate_json(json.dumps(payload))
        assert pair.completed_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert pair.completed_at.tzinfo == timezone.utc

    def test_aware_completed_at_preserved(self):
        ts = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        pair = _pair(_image("d"), _image("l"), completed_at=ts)
        assert pair.completed_at == ts

    def test_score_out_of_range_raises(self):
        with pytest.raises(ValidationError):
            _pair(_image("d"), _image("l"), score=1.2)

    def test_invalid_status_raises(self):
        with pytest.raises(ValidationError):
            _pair(_image("d"), _image("l"), status="pending")

    def test_export_base_name_uses_common_prefix(self):
        pair = _pair(
            _image("d", file_name="settings-dark.png"),
            _image("l", file_name="settings-light.png"),
        )
        assert pair.export_base_name == "settings"

    def test_round_trip_with_path(self):
        image = LibraryImage(id="d", file_name="d.png", path=Path("screenshots/d.png"), features=_features())
        pair = _pair(image, _image("l"), completed_at=datetime(2026, 3, 1, tzinfo=timezone.utc))
        round_trip(pair)


# ---------------------------------------------------------------------------
# LibrarySession partition
# ---------------------------------------------------------------------------

class TestLibrarySession:
    def _session_parts(self):
        d1, l1, d2, l2, u1 = (_image(i) for i in ("d1", "l1", "d2", "l2", "u1"))
        pair = _pair(d1, l1)
        review_pair = _pair(d2, l2, score=0.75, reason="borderline")
        review = ReviewItem(id=review_pair.id, pair=review_pair)
        return [d1, l1, d2, l2, u1], pair, review

    def test_empty_session(self):
        session = LibrarySession()
        assert session.images == []
        assert session.unmatched_image_ids == []

    def test_valid_partition(self):
        images, pair, review = self._session_parts()
        session = LibrarySession(
            images=images, pairs=[pair], review_pairs=[review], unmatched_image_ids=["u1"]
        )
        assert session.pair_by_id("d1__l1") == pair
        assert session.review_by_id("d2__l2") == review
        assert session.image_by_id("u1").id == "u1"
        assert session.image_by_id("missing") is None

    def test_image_in_two_buckets_raises(self):
        images, pair, review = self._session_parts()
        with pytest.raises(ValidationError, match="more than one"):
            LibrarySession(
                images=images, pairs=[pair], review_pairs=[review], unmatched_image_ids=["u1", "d1"]
            )

    def test_unassigned_image_raises(self):
        images, pair, review = self._session_parts()
        with pytest.raises(ValidationError, match="unassigned"):
            LibrarySession(images=images, pairs=[pair], review_pairs=[review])

    def test_unknown_image_id_raises(self):
        images, pair, review = self._session_parts()
        with pytest.raises(ValidationError, match="unknown"):
            LibrarySession(
                images=images, pairs=[pair], review_pairs=[review],
                unmatched_image_ids=["u1", "ghost"],
            )

    def test_duplicate_image_ids_raise(self):
        with pytest.raises(ValidationError, match="image ids must be unique"):
            LibrarySession(images=[_image("a"), _image("a")], unmatched_image_ids=["a"])

    def test_round_trip(self):
        images, pair, review = self._session_parts()
        session = LibrarySession(
            images=images, pairs=[pair], review_pairs=[review], unmatched_image_ids=["u1"]
        )
        restored = round_trip(session)
        assert restored.review_pairs[0].reason == "borderline"


class TestPipelineEvent:
    def test_progress_bounds(self):
        with pytest.raises(ValidationError):
            PipelineEvent(stage="ingest", step="x", progress=1.5, message="")

    def test_payload_optional(self):
        event = PipelineEvent(stage="ingest", step="x", progress=0.5, message="half")
        assert event.payload is None
