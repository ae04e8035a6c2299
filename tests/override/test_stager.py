"""Tests for staging a prebuilt FFmpeg override."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from flatprep.errors import (
    InvalidOverrideArchive,
    MissingOverrideFile,
    ModuleDescriptorNotFound,
    NoMatchingArchiveEntry,
    UnreadableFile,
    WriteFailure,
)
from flatprep.models import ARCHIVE, SINGLE_FILE
from flatprep.override.stager import (
    SourceOverrideStager,
    StagingLayout,
    inspect_artifact,
    select_entry,
)
from tests._fixtures.workspace_builder import SAMPLE_DESCRIPTOR


def _stager(workspace) -> SourceOverrideStager:
    return SourceOverrideStager(StagingLayout(workspace.path()))


def test_select_entry_prefers_architecture_match() -> None:
    names = ["a/Linux-x86_64-ffmpeg.tar.gz", "b/Linux-aarch64-ffmpeg.tar.gz"]

    assert select_entry(names, "x86_64") == "a/Linux-x86_64-ffmpeg.tar.gz"
    assert select_entry(names, "aarch64") == "b/Linux-aarch64-ffmpeg.tar.gz"


def test_select_entry_falls_back_to_generic_tarball() -> None:
    assert select_entry(["misc/ffmpeg.tar.gz"], "aarch64") == "misc/ffmpeg.tar.gz"


def test_select_entry_uses_listing_order_for_ties() -> None:
    names = ["z/Linux-x86_64-ffmpeg.tar.gz", "a/Linux-x86_64-ffmpeg.tar.gz"]

    assert select_entry(names, "x86_64") == "z/Linux-x86_64-ffmpeg.tar.gz"


def test_select_entry_returns_none_without_tarballs() -> None:
    assert select_entry(["README.md", "ffmpeg.zip"], "x86_64") is None


def test_inspect_artifact_infers_kind_from_extension(workspace) -> None:
    archive = workspace.archive("bundle.ZIP", {"x/ffmpeg.tar.gz": b"data"})
    # A zip payload under a tarball name is still staged as a single file.
    disguised = workspace.tarball("override.tar.gz", archive.read_bytes())

    assert inspect_artifact(archive).kind == ARCHIVE
    assert inspect_artifact(archive).entries == ["x/ffmpeg.tar.gz"]
    assert inspect_artifact(disguised).kind == SINGLE_FILE


def test_inspect_artifact_rejects_empty_file(workspace) -> None:
    empty = workspace.tarball(payload=b"")

    with pytest.raises(MissingOverrideFile) as excinfo:
        inspect_artifact(empty)
    assert "empty" in str(excinfo.value)


def test_stage_archive_copies_selected_entry_everywhere(workspace) -> None:
    workspace.descriptor()
    archive = workspace.archive(
        "ffmpeg-artifacts.zip",
        {
            "a/Linux-x86_64-ffmpeg.tar.gz": b"x86-payload",
            "b/Linux-aarch64-ffmpeg.tar.gz": b"arm-payload",
        },
    )

    staged = _stager(workspace).stage(archive, "aarch64")

    assert staged.selected_entry == "b/Linux-aarch64-ffmpeg.tar.gz"
    root = workspace.path()
    assert staged.copies == (
        root / "ffmpeg.tar.gz",
        root / "build" / "ffmpeg.tar.gz",
        root / "build" / "modules" / "ffmpeg.tar.gz",
    )
    for copy in staged.copies:
        assert copy.read_bytes() == b"arm-payload"


def test_stage_archive_falls_back_to_generic_entry(workspace) -> None:
    workspace.descriptor()
    archive = workspace.archive(
        "ffmpeg-artifacts.zip",
        {"notes.txt": b"hi", "misc/ffmpeg.tar.gz": b"generic"},
    )

    staged = _stager(workspace).stage(archive, "aarch64")

    assert staged.selected_entry == "misc/ffmpeg.tar.gz"
    assert staged.repo_copy.read_bytes() == b"generic"


def test_stage_archive_without_match_fails(workspace) -> None:
    workspace.descriptor()
    archive = workspace.archive("ffmpeg-artifacts.zip", {"ffmpeg.tar.xz": b"nope"})

    with pytest.raises(NoMatchingArchiveEntry) as excinfo:
        _stager(workspace).stage(archive, "x86_64")

    message = str(excinfo.value)
    assert "Linux-x86_64-ffmpeg.tar.gz" in message
    assert "ffmpeg-artifacts.zip" in message
    assert not (workspace.path() / "ffmpeg.tar.gz").exists()


def test_stage_single_file_rewrites_descriptor(workspace) -> None:
    descriptor = workspace.descriptor()
    tarball = workspace.tarball(payload=b"prebuilt")

    staged = _stager(workspace).stage(tarball, "x86_64")

    assert staged.selected_entry is None
    assert {copy.read_bytes() for copy in staged.copies} == {b"prebuilt"}

    text = descriptor.read_text(encoding="utf-8")
    data = json.loads(text)
    assert text.endswith("}\n")
    assert data["sources"] == [{"type": "file", "path": "../ffmpeg.tar.gz"}]
    assert staged.source_path == "../ffmpeg.tar.gz"
    for key, value in SAMPLE_DESCRIPTOR.items():
        if key != "sources":
            assert data[key] == value
    assert list(data) == list(SAMPLE_DESCRIPTOR)


def test_stage_is_repeatable(workspace) -> None:
    descriptor = workspace.descriptor()
    tarball = workspace.tarball(payload=b"prebuilt")
    stager = _stager(workspace)

    stager.stage(tarball, "x86_64")
    first = descriptor.read_bytes()
    stager.stage(tarball, "x86_64")

    assert descriptor.read_bytes() == first


def test_stage_missing_override_writes_nothing(workspace) -> None:
    workspace.descriptor()
    missing = workspace.path() / "does-not-exist.zip"

    with pytest.raises(MissingOverrideFile) as excinfo:
        _stager(workspace).stage(missing, "x86_64")

    assert "does-not-exist.zip" in str(excinfo.value)
    root = workspace.path()
    assert not (root / "ffmpeg.tar.gz").exists()
    assert not (root / "build" / "ffmpeg.tar.gz").exists()
    assert not (root / "build" / "modules" / "ffmpeg.tar.gz").exists()


def test_stage_missing_descriptor_is_fatal(workspace) -> None:
    tarball = workspace.tarball()

    with pytest.raises(ModuleDescriptorNotFound) as excinfo:
        _stager(workspace).stage(tarball, "x86_64")

    assert excinfo.value.path.name == "ffmpeg.json"
    assert not (workspace.path() / "ffmpeg.tar.gz").exists()


def test_stage_honours_custom_layout(workspace) -> None:
    tarball = workspace.tarball()
    layout = StagingLayout(workspace.path(), modules_dir="generated")
    layout.descriptor.parent.mkdir(parents=True)
    layout.descriptor.write_text('{"name": "ffmpeg"}', encoding="utf-8")

    staged = SourceOverrideStager(layout).stage(tarball, "x86_64")

    assert staged.module_copy == workspace.path() / "build" / "generated" / "ffmpeg.tar.gz"
    assert staged.module_copy.exists()


def test_stage_rejects_corrupt_zip(workspace) -> None:
    workspace.descriptor()
    broken = workspace.tarball("ffmpeg-artifacts.zip", b"this is not a zip archive")

    with pytest.raises(InvalidOverrideArchive) as excinfo:
        _stager(workspace).stage(broken, "x86_64")

    assert excinfo.value.path == broken
    assert "ffmpeg-artifacts.zip" in str(excinfo.value)
    assert not (workspace.path() / "ffmpeg.tar.gz").exists()


def test_stage_rejects_malformed_descriptor_before_copying(workspace) -> None:
    descriptor = workspace.descriptor()
    descriptor.write_text('{"name": "ffmpeg",', encoding="utf-8")
    tarball = workspace.tarball()

    with pytest.raises(UnreadableFile) as excinfo:
        _stager(workspace).stage(tarball, "x86_64")

    assert excinfo.value.path == descriptor
    root = workspace.path()
    assert not (root / "ffmpeg.tar.gz").exists()
    assert not (root / "build" / "ffmpeg.tar.gz").exists()
    assert descriptor.read_text(encoding="utf-8") == '{"name": "ffmpeg",'


def test_stage_rejects_descriptor_that_is_not_an_object(workspace) -> None:
    descriptor = workspace.descriptor()
    descriptor.write_text("[]\n", encoding="utf-8")

    with pytest.raises(UnreadableFile) as excinfo:
        _stager(workspace).stage(workspace.tarball(), "x86_64")

    assert "must be an object" in str(excinfo.value)


def test_stage_wraps_descriptor_read_error(workspace, monkeypatch) -> None:
    descriptor = workspace.descriptor()
    tarball = workspace.tarball()
    original_read_text = Path.read_text

    def fake_read_text(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        if self == descriptor:
            raise PermissionError(13, "Permission denied", str(self))
        return original_read_text(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", fake_read_text)

    with pytest.raises(WriteFailure) as excinfo:
        _stager(workspace).stage(tarball, "x86_64")

    assert excinfo.value.path == descriptor
    assert excinfo.value.action == "read"
    assert not (workspace.path() / "ffmpeg.tar.gz").exists()


def test_stage_reports_unwritable_copy_destination(workspace) -> None:
    descriptor = workspace.descriptor()
    before = descriptor.read_bytes()
    tarball = workspace.tarball(payload=b"prebuilt")
    layout = StagingLayout(workspace.path())
    # A directory squatting on the build copy, holding a same-named directory,
    # makes the copy fail whichever way it resolves the destination.
    (layout.build_copy / layout.tarball_name).mkdir(parents=True)

    with pytest.raises(WriteFailure) as excinfo:
        SourceOverrideStager(layout).stage(tarball, "x86_64")

    assert excinfo.value.path == layout.build_copy
    assert isinstance(excinfo.value.cause, OSError)
    assert str(layout.build_copy) in str(excinfo.value)
    assert descriptor.read_bytes() == before


def test_stage_accepts_override_already_at_repo_copy(workspace) -> None:
    descriptor = workspace.descriptor()
    in_place = workspace.path() / "ffmpeg.tar.gz"
    in_place.write_bytes(b"already-here")

    staged = _stager(workspace).stage(in_place, "x86_64")

    assert staged.repo_copy == in_place
    assert {copy.read_bytes() for copy in staged.copies} == {b"already-here"}
    data = json.loads(descriptor.read_text(encoding="utf-8"))
    assert data["sources"] == [{"type": "file", "path": "../ffmpeg.tar.gz"}]
