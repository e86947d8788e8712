from __future__ import annotations

import hashlib
import io
from pathlib import Path

import pytest

from packsync.adapters.transfer_local import LocalDirectoryTransfer, path_from_url


def test_path_from_url(tmp_path: Path) -> None:
    target = tmp_path / "my file.bin"
    assert path_from_url(target.as_uri()) == target
    assert path_from_url(str(target)) == target
    with pytest.raises(ValueError):
        path_from_url("ftp://host/file.bin")


def test_copies_and_reports_digest_as_tag(tmp_path: Path) -> None:
    source = tmp_path / "a.bin"
    source.write_bytes(b"0123456789")
    sink = io.BytesIO()
    progress = []

    result = LocalDirectoryTransfer(chunk_size=4).fetch(
        source.as_uri(),
        sink,
        digest_algorithm="sha256",
        on_progress=lambda received, total: progress.append((received, total)),
    )

    expected = hashlib.sha256(b"0123456789").hexdigest()
    assert sink.getvalue() == b"0123456789"
    assert result.modified
    assert result.entity_tag == expected
    assert result.digest_hex == expected
    assert progress == [(4, 10), (8, 10), (10, 10)]


def test_matching_prior_tag_skips_the_copy(tmp_path: Path) -> None:
    source = tmp_path / "a.bin"
    source.write_bytes(b"same")
    prior = hashlib.md5(b"same").hexdigest()
    sink = io.BytesIO()

    result = LocalDirectoryTransfer().fetch(str(source), sink, digest_algorithm="md5", prior_entity_tag=prior)

    assert result.modified is False
    assert sink.getvalue() == b""


def test_changed_content_is_copied_again(tmp_path: Path) -> None:
    source = tmp_path / "a.bin"
    source.write_bytes(b"new")
    sink = io.BytesIO()

    result = LocalDirectoryTransfer().fetch(
        str(source), sink, digest_algorithm="md5", prior_entity_tag=hashlib.md5(b"old").hexdigest()
    )

    assert result.modified is True
    assert sink.getvalue() == b"new"


def test_without_digest_no_tag_is_reported(tmp_path: Path) -> None:
    source = tmp_path / "a.bin"
    source.write_bytes(b"x")
    result = LocalDirectoryTransfer().fetch(str(source), io.BytesIO())
    assert result.entity_tag is None
    assert result.digest_hex is None


def test_missing_source_raises_oserror(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        LocalDirectoryTransfer().fetch(str(tmp_path / "missing.bin"), io.BytesIO())
