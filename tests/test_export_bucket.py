from pathlib import Path

import pytest

from storage.export_bucket import ExportBucket


def test_put_and_get_mirrors_to_disk(tmp_path: Path) -> None:
    bucket = ExportBucket(name="exports", root_path=tmp_path)
    bucket.put_object("tank-history-1.csv", b"Date,Time\n")

    assert (tmp_path / "tank-history-1.csv").read_bytes() == b"Date,Time\n"
    assert "tank-history-1.csv" in bucket.list_objects()

    fresh_bucket = ExportBucket(name="exports", root_path=tmp_path)
    assert fresh_bucket.get_object("tank-history-1.csv") == b"Date,Time\n"
    assert fresh_bucket.list_objects() == ["tank-history-1.csv"]


def test_missing_key_raises_key_error() -> None:
    bucket = ExportBucket(name="exports")

    with pytest.raises(KeyError, match="missing.csv"):
        bucket.get_object("missing.csv")
