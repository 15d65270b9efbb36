"""
Unit Tests for FileStorageManager

Tests file storage operations in isolation.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from app.services.file_storage import FileStorageManager, safe_extension


@pytest.fixture
def temp_storage(tmp_path):
    """Create temporary storage directory for testing."""
    return FileStorageManager(upload_dir=str(tmp_path / "uploads"))


def test_save_model_creates_directory_and_file(temp_storage):
    """Test that save_model creates the upload directory and writes <id>-model.<ext>."""
    file_path = temp_storage.save_model("test-job-123", "STL", b"solid cube")

    expected_path = temp_storage.upload_dir / "test-job-123-model.stl"
    assert file_path == expected_path
    assert expected_path.is_file()
    assert expected_path.read_bytes() == b"solid cube"

    # Verify file permissions (644 = rw-r--r--)
    assert expected_path.stat().st_mode & 0o777 == 0o644


def test_save_upload_uses_upload_suffix(temp_storage):
    """Test that plain uploads are stored as <id>-upload.<ext>."""
    file_path = temp_storage.save_upload("abc", "step", b"ISO-10303-21;")

    assert file_path.name == "abc-upload.step"
    assert file_path.read_bytes() == b"ISO-10303-21;"


@pytest.mark.parametrize(
    "filetype,expected",
    [("stl", "stl"), ("3MF", "3mf"), ("../stl", "stl"), ("", "bin"), ("..", "bin")],
)
def test_safe_extension(filetype, expected):
    """Test that declared file types cannot inject path components."""
    assert safe_extension(filetype) == expected


def test_store_output_copies_with_session_prefix(temp_storage, tmp_path):
    """Test that engine output is copied as <id>-gcode-<name>."""
    source = tmp_path / "work" / "plate_1.gcode"
    source.parent.mkdir()
    source.write_text("G28")

    stored = temp_storage.store_output("abc", source)

    assert stored == temp_storage.upload_dir / "abc-gcode-plate_1.gcode"
    assert stored.read_text() == "G28"
    assert source.exists()


def test_delete_session_files_only_matches_prefix(temp_storage):
    """Test that only <id>-* files are deleted."""
    temp_storage.save_model("abc", "stl", b"a")
    temp_storage.save_upload("abc", "stl", b"b")
    keep = temp_storage.save_model("abcd", "stl", b"c")

    deleted = temp_storage.delete_session_files("abc")

    assert deleted == 2
    assert [p.name for p in temp_storage.upload_dir.iterdir()] == [keep.name]


def test_delete_session_files_without_upload_dir(tmp_path):
    """Test that cleanup before the directory exists is a no-op."""
    storage = FileStorageManager(upload_dir=str(tmp_path / "missing"))

    assert storage.delete_session_files("abc") == 0


def test_delete_files_continues_after_failure(temp_storage):
    """Test that one failing deletion does not stop the batch."""
    first = temp_storage.save_model("one", "stl", b"a")
    second = temp_storage.save_model("two", "stl", b"b")
    missing = temp_storage.upload_dir / "never-existed.stl"

    original_unlink = Path.unlink

    def flaky_unlink(path, *args, **kwargs):
        if path == first:
            raise PermissionError("read-only")
        return original_unlink(path, *args, **kwargs)

    with patch.object(Path, "unlink", flaky_unlink):
        deleted = temp_storage.delete_files([first, missing, second])

    assert deleted == 1
    assert first.exists()
    assert not second.exists()


def test_remove_workdir(temp_storage, tmp_path):
    """Test that working directories are removed recursively."""
    workdir = tmp_path / "slice-abc-xyz"
    (workdir / "output").mkdir(parents=True)
    (workdir / "output" / "plate_1.gcode").write_text("G28")

    temp_storage.remove_workdir(workdir)
    temp_storage.remove_workdir(workdir)
    temp_storage.remove_workdir(None)

    assert not workdir.exists()
