"""
Tests for the directory and zip bundle writers.
"""

import os
import shutil
import tempfile
import time
import zipfile
from pathlib import Path

import pytest

from ..errors import ArchiveFinalizeError, WriteError
from ..writers import DirectoryBundleWriter, ZipBundleWriter, create_writer


class TestCreateWriter:
    """Test writer selection by target name."""

    def test_archive_targets(self):
        """Test that archive targets get a zip writer."""
        assert isinstance(create_writer("out/bundle.zip"), ZipBundleWriter)
        assert isinstance(create_writer("out/bundle.JAR"), ZipBundleWriter)

    def test_directory_target(self):
        """Test that other targets get a directory writer."""
        assert isinstance(create_writer("out/bundle"), DirectoryBundleWriter)


class TestDirectoryBundleWriter:
    """Test DirectoryBundleWriter functionality."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.target = Path(self.temp_dir) / "bundle"
        self.writer = DirectoryBundleWriter(self.target)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_entry_written_on_close(self):
        """Test that an entry appears only when its sink is closed."""
        sink = self.writer.start_new_file("images/grass.raw")
        sink.write(b"abc")
        assert not (self.target / "images" / "grass.raw").exists()

        sink.close()
        assert (self.target / "images" / "grass.raw").read_bytes() == b"abc"
        assert self.writer.read_entry("images/grass.raw") == b"abc"

    def test_entry_discarded_on_exception(self):
        """Test that an entry is discarded when writing it fails."""
        with pytest.raises(RuntimeError):
            with self.writer.start_new_file("broken.png") as sink:
                sink.write(b"partial")
                raise RuntimeError("boom")

        assert not (self.target / "broken.png").exists()

    def test_no_temporary_files_left(self):
        """Test that no temporary files are left behind."""
        with self.writer.start_new_file("a.png") as sink:
            sink.write(b"1")

        assert sorted(os.listdir(self.target)) == ["a.png"]

    def test_is_path_newer_than(self):
        """Test per entry staleness."""
        with self.writer.start_new_file("a.png") as sink:
            sink.write(b"1")
        mtime = os.path.getmtime(self.target / "a.png")

        assert self.writer.is_path_newer_than("a.png", mtime - 10)
        assert not self.writer.is_path_newer_than("a.png", mtime + 10)
        assert not self.writer.is_path_newer_than("missing.png", 0)

    def test_whole_directory_never_up_to_date(self):
        """Test that a directory is never up to date as a whole."""
        assert not self.writer.is_newer_than(0)

    def test_delete(self):
        """Test removing a directory bundle."""
        with self.writer.start_new_file("a.png") as sink:
            sink.write(b"1")

        assert self.writer.delete()
        assert not self.target.exists()

    def test_delete_keeps_files_it_did_not_write(self):
        """Test that rollback leaves pre-existing files and directories alone."""
        (self.target / "sprites").mkdir(parents=True)
        (self.target / "unrelated.txt").write_text("keep")
        (self.target / "sprites" / "hero.png").write_bytes(b"hero")
        (self.target / "old.raw").write_bytes(b"old")

        for path in ("a.png", "sprites/new.png", "deep/er/b.png", "old.raw"):
            with self.writer.start_new_file(path) as sink:
                sink.write(b"1")

        assert self.writer.delete()
        assert sorted(os.listdir(self.target)) == ["old.raw", "sprites", "unrelated.txt"]
        assert os.listdir(self.target / "sprites") == ["hero.png"]
        assert (self.target / "old.raw").read_bytes() == b"1"

    def test_delete_keeps_target_it_did_not_create(self):
        """Test that rollback keeps a target directory that existed before the build."""
        self.target.mkdir()
        with self.writer.start_new_file("a.png") as sink:
            sink.write(b"1")

        assert self.writer.delete()
        assert self.target.is_dir()
        assert os.listdir(self.target) == []

    def test_entries_outside_target_rejected(self):
        """Test that absolute and parent-relative entry paths are refused."""
        for path in ("../escape.png", "sprites/../../escape.png", "/tmp/escape.png", ""):
            with pytest.raises(WriteError):
                self.writer.start_new_file(path)

        with pytest.raises(WriteError):
            self.writer.is_path_newer_than("../escape.png", 0)
        assert os.listdir(self.temp_dir) == []

    def test_no_writes_after_close(self):
        """Test that a closed writer accepts no more entries."""
        self.writer.close()

        with pytest.raises(WriteError):
            self.writer.start_new_file("late.png")
        with pytest.raises(ArchiveFinalizeError):
            self.writer.close()

    def test_write_failure_becomes_write_error(self):
        """Test that OS errors while writing become write errors."""
        self.target.mkdir(parents=True)
        (self.target / "blocked").write_bytes(b"")

        with pytest.raises(WriteError):
            with self.writer.start_new_file("blocked/child.png") as sink:
                sink.write(b"1")


class TestZipBundleWriter:
    """Test ZipBundleWriter functionality."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.target = Path(self.temp_dir) / "bundle.zip"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, entries):
        writer = ZipBundleWriter(self.target)
        for path, data in entries:
            with writer.start_new_file(path) as sink:
                sink.write(data)
        return writer

    def test_archive_appears_on_close(self):
        """Test that the archive appears only when closed."""
        writer = self._write([("a.png", b"1"), ("meta/tsbundle.dat", b"22")])
        assert not self.target.exists()

        writer.close()
        with zipfile.ZipFile(self.target) as archive:
            assert sorted(archive.namelist()) == ["a.png", "meta/tsbundle.dat"]
            assert archive.read("meta/tsbundle.dat") == b"22"
        assert writer.read_entry("a.png") == b"1"

    def test_rollback_removes_everything(self):
        """Test that rollback removes the archive and its temporary file."""
        writer = self._write([("a.png", b"1")])

        assert writer.delete()
        assert not self.target.exists()
        assert os.listdir(self.temp_dir) == []

    def test_rollback_replaces_previous_archive(self):
        """Test that rollback also removes a previous archive."""
        self._write([("old.png", b"0")]).close()
        writer = self._write([("new.png", b"1")])

        assert writer.delete()
        assert not self.target.exists()

    def test_identical_input_gives_identical_archive(self):
        """Test that identical entries give identical archives."""
        entries = [("a.png", b"1" * 100), ("b.raw", b"xyz")]
        self._write(entries).close()
        first = self.target.read_bytes()

        time.sleep(0.01)
        self._write(entries).close()
        assert self.target.read_bytes() == first

    def test_staleness(self):
        """Test whole archive staleness."""
        writer = ZipBundleWriter(self.target)
        assert not writer.is_newer_than(0)
        assert not writer.is_path_newer_than("a.png", 0)

        self._write([("a.png", b"1")]).close()
        mtime = os.path.getmtime(self.target)
        assert writer.is_newer_than(mtime - 10)
        assert not writer.is_newer_than(mtime + 10)

    def test_entries_outside_archive_rejected(self):
        """Test that the zip writer refuses entry paths leading out of the archive."""
        writer = ZipBundleWriter(self.target)

        with pytest.raises(WriteError):
            writer.start_new_file("../escape.png")
        with pytest.raises(WriteError):
            writer.start_new_file("/escape.png")

    def test_empty_archive(self):
        """Test closing an archive without entries."""
        writer = ZipBundleWriter(self.target)
        writer.close()

        with zipfile.ZipFile(self.target) as archive:
            assert archive.namelist() == []
