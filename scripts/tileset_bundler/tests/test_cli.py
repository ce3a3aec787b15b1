"""
Tests for the tileset-bundler command-line interface.
"""

import json
import os
import shutil
import tempfile
import time
import zipfile
from pathlib import Path

from PIL import Image, ImageDraw
from typer.testing import CliRunner

from ..cli import app
from ..processing.metadata import read_binary_metadata

SOURCE_TIME = time.time() - 3600

DESCRIPTION = """
[[tileset]]
kind = "uniform"
name = "grass"
image = "grass.png"
width = 16
height = 16
count = 2

[[tileset]]
kind = "object"
name = "trees"
image = "trees.png"
rows = [[2, 10, 10]]

[[tileset.sprites]]
owidth = 1
oheight = 1
xorigin = 5
yorigin = 9

[[tileset.sprites]]
owidth = 1
oheight = 1
xorigin = 5
yorigin = 9
"""


class TestCLI:
    """Test CLI commands end to end."""

    def setup_method(self):
        self.runner = CliRunner()
        self.temp_dir = tempfile.mkdtemp()
        self.original_cwd = os.getcwd()
        os.chdir(self.temp_dir)

        Image.new('RGBA', (32, 16), (40, 160, 40, 255)).save("grass.png")
        trees = Image.new('RGBA', (20, 10), (0, 0, 0, 0))
        ImageDraw.Draw(trees).rectangle([12, 2, 19, 9], fill=(20, 120, 20, 255))
        trees.save("trees.png")
        Path("tiles.toml").write_text(DESCRIPTION)
        for name in ("grass.png", "trees.png", "tiles.toml"):
            os.utime(name, (SOURCE_TIME, SOURCE_TIME))

    def teardown_method(self):
        os.chdir(self.original_cwd)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_build_zip(self):
        """Test building a zip bundle from the command line."""
        result = self.runner.invoke(app, ["build", "tiles.toml", "bundle.zip"])

        assert result.exit_code == 0, result.stdout
        assert "Built bundle" in result.stdout
        assert "Bundle Build Summary" in result.stdout
        with zipfile.ZipFile("bundle.zip") as archive:
            assert sorted(archive.namelist()) == ["grass.raw", "trees.raw", "tsbundle.dat"]

    def test_second_build_is_up_to_date(self):
        """Test that an unchanged rebuild reports the bundle as up to date."""
        self.runner.invoke(app, ["build", "tiles.toml", "bundle.zip"])
        result = self.runner.invoke(app, ["build", "tiles.toml", "bundle.zip", "--no-summary"])

        assert result.exit_code == 0
        assert "is up to date" in result.stdout

    def test_build_with_options(self):
        """Test that build options override the configuration."""
        result = self.runner.invoke(app, [
            "build", "tiles.toml", "out",
            "--no-raw", "--packer", "tree", "--format", "json", "--workers", "2",
        ])

        assert result.exit_code == 0, result.stdout
        assert sorted(os.listdir("out")) == ["grass.png", "trees.png", "tsbundle.json"]
        manifest = json.loads(Path("out/tsbundle.json").read_text())
        assert [entry["set"]["name"] for entry in manifest] == ["grass", "trees"]

    def test_build_with_id_store(self):
        """Test that --ids writes the persistent id store."""
        result = self.runner.invoke(app, ["build", "tiles.toml", "out", "--ids", "ids.json"])

        assert result.exit_code == 0
        assert json.loads(Path("ids.json").read_text()) == {"grass": 1, "trees": 2}

    def test_build_reports_missing_image(self):
        """Test that a missing image is reported as a warning."""
        os.remove("grass.png")
        result = self.runner.invoke(app, ["build", "tiles.toml", "out"])

        assert result.exit_code == 0
        assert "Warning:" in result.stdout
        bundle = read_binary_metadata(Path("out/tsbundle.dat").read_bytes())
        assert [ts.name for _, ts in bundle.items()] == ["trees"]

    def test_build_missing_description(self):
        """Test that a missing description exits with an error."""
        result = self.runner.invoke(app, ["build", "missing.toml", "bundle.zip"])

        assert result.exit_code == 1
        assert "Build failed" in result.stdout
        assert not Path("bundle.zip").exists()

    def test_build_invalid_options(self):
        """Test that invalid options fail validation."""
        result = self.runner.invoke(app, ["build", "tiles.toml", "out", "--packer", "spiral"])

        assert result.exit_code == 1
        assert "Configuration validation errors" in result.stdout

    def test_build_unknown_format(self):
        """Test that an unknown metadata format is a configuration error."""
        result = self.runner.invoke(app, ["build", "tiles.toml", "out", "--format", "yaml"])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout

    def test_inspect(self):
        """Test listing the tile sets of a zip bundle."""
        self.runner.invoke(app, ["build", "tiles.toml", "bundle.zip"])
        result = self.runner.invoke(app, ["inspect", "bundle.zip"])

        assert result.exit_code == 0, result.stdout
        assert "grass" in result.stdout
        assert "trimmed_object" in result.stdout

    def test_inspect_directory_toml(self):
        """Test inspecting a directory bundle with TOML metadata."""
        self.runner.invoke(app, ["build", "tiles.toml", "out", "--format", "toml"])
        result = self.runner.invoke(app, ["inspect", "out"])

        assert result.exit_code == 0, result.stdout
        assert "tsbundle.toml" in result.stdout
        assert "trees" in result.stdout

    def test_inspect_truncated_metadata(self):
        """Test that inspect reports truncated binary metadata instead of crashing."""
        self.runner.invoke(app, ["build", "tiles.toml", "out"])
        metadata = Path("out/tsbundle.dat")
        metadata.write_bytes(metadata.read_bytes()[:-3])

        result = self.runner.invoke(app, ["inspect", "out"])

        assert result.exit_code == 1
        assert "Unreadable metadata" in result.stdout
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_inspect_missing_bundle(self):
        """Test inspecting a bundle that does not exist."""
        result = self.runner.invoke(app, ["inspect", "nowhere.zip"])

        assert result.exit_code == 1
        assert "Bundle not found" in result.stdout

    def test_inspect_without_metadata(self):
        """Test inspecting a directory without bundle metadata."""
        os.makedirs("empty")
        result = self.runner.invoke(app, ["inspect", "empty"])

        assert result.exit_code == 1
        assert "No bundle metadata" in result.stdout

    def test_config_show(self):
        """Test showing the current configuration."""
        result = self.runner.invoke(app, ["config", "--show"])

        assert result.exit_code == 0
        assert "Tile Set Bundler Configuration" in result.stdout

    def test_config_validate(self):
        """Test validating a configuration file found in the working directory."""
        Path("tileset_bundler.toml").write_text('[packing]\npacker = "tree"\n')
        result = self.runner.invoke(app, ["config", "--validate"])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.stdout

    def test_config_validate_errors(self):
        """Test that validation errors exit with an error."""
        Path("bad.toml").write_text('[output]\ncompression_level = 12\n')
        result = self.runner.invoke(app, ["config", "--validate", "--config", "bad.toml"])

        assert result.exit_code == 1
        assert "compression_level" in result.stdout

    def test_config_file_not_found(self):
        """Test that a missing --config file is reported."""
        result = self.runner.invoke(app, ["config", "--show", "--config", "missing.toml"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.stdout

    def test_config_env_vars(self):
        """Test listing the environment variables."""
        result = self.runner.invoke(app, ["config", "--env-vars"])

        assert result.exit_code == 0
        assert "TILESET_BUNDLER_" in result.stdout

    def test_version(self):
        """Test the version command."""
        result = self.runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Tile Set Bundler" in result.stdout
        assert "Pillow" in result.stdout

    def test_invalid_command(self):
        """Test handling of invalid commands."""
        result = self.runner.invoke(app, ["invalid_command"])
        assert result.exit_code != 0
