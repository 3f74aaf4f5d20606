"""Tests for the command-line front end.

Taichi is already initialized by the session fixture, so the CLI's own
initialization is replaced with a no-op; re-initializing would discard
every field allocated so far.
"""

import logging

import pytest
from PIL import Image as PILImage

from prayer import cli

TINY = ["--width", "4", "--height", "3", "--samples", "2", "--bounces", "2"]


@pytest.fixture(autouse=True)
def no_taichi_reinit(monkeypatch):
    """Skip ti.init inside main()."""
    calls = []
    monkeypatch.setattr(cli, "init_taichi", lambda *args, **kwargs: calls.append((args, kwargs)))
    return calls


@pytest.fixture(autouse=True)
def restore_logger():
    """Undo the handler configure_logging installs on the prayer logger."""
    logger = logging.getLogger("prayer")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestPresetCommand:
    """Tests for 'prayer preset'."""

    def test_renders_png(self, tmp_path, no_taichi_reinit):
        """Test a preset renders to the requested size."""
        output = tmp_path / "box.png"

        assert cli.main(["preset", "cornell_box", "-o", str(output), "-q", *TINY]) == 0

        with PILImage.open(output) as img:
            assert img.size == (4, 3)
            assert img.mode == "RGB"
        assert no_taichi_reinit[0][0] == ("cpu",)

    def test_unknown_preset(self, tmp_path, capsys):
        """Test an unknown preset name fails with a message."""
        assert cli.main(["preset", "teapot", "-o", str(tmp_path / "t.png")]) == 1
        assert "teapot" in capsys.readouterr().err

    def test_refuses_to_overwrite(self, tmp_path, capsys):
        """Test an existing output is kept unless --force is given."""
        output = tmp_path / "spheres.png"
        output.write_bytes(b"keep")

        assert cli.main(["preset", "spheres", "-o", str(output), *TINY]) == 1
        assert output.read_bytes() == b"keep"
        assert "--force" in capsys.readouterr().err

        assert cli.main(["preset", "spheres", "-o", str(output), "--force", "-q", *TINY]) == 0
        assert output.read_bytes() != b"keep"

    def test_invalid_override(self, tmp_path):
        """Test out-of-range overrides are reported as errors."""
        output = tmp_path / "s.png"
        assert cli.main(["preset", "spheres", "-o", str(output), "--samples", "0"]) == 1
        assert not output.exists()


class TestRenderCommand:
    """Tests for 'prayer render'."""

    def test_default_output_next_to_config(self, tmp_path):
        """Test the PNG is written beside the configuration by default."""
        config = tmp_path / "lamp.toml"
        config.write_text(
            "[params]\nresolution = [2, 2]\nsamples = 1\n"
            "[[scene.materials]]\nalbedo = 0.0\nemission = 1.0\n"
            '[[scene.objects]]\ntype = "sphere"\ncenter = [0, 0, 0]\nradius = 50\nmaterial = 0\n'
        )

        assert cli.main(["render", str(config), "-q"]) == 0
        assert (tmp_path / "lamp.png").exists()

    def test_empty_scene_fails(self, tmp_path, capsys):
        """Test a configuration without objects is refused."""
        config = tmp_path / "empty.toml"
        config.write_text("[params]\nsamples = 1\n")

        assert cli.main(["render", str(config)]) == 1
        assert "without a scene" in capsys.readouterr().err
        assert not (tmp_path / "empty.png").exists()

    def test_bad_config_fails(self, tmp_path, capsys):
        """Test configuration errors are reported and exit with 1."""
        config = tmp_path / "bad.toml"
        config.write_text("[params]\nsamples = -3\n")

        assert cli.main(["render", str(config)]) == 1
        assert "samples" in capsys.readouterr().err


class TestMisc:
    """Tests for the remaining commands and options."""

    def test_presets_lists_names(self, capsys, no_taichi_reinit):
        """Test 'prayer presets' prints one name per line without Taichi."""
        assert cli.main(["presets"]) == 0
        assert capsys.readouterr().out.split() == ["cornell_box", "spheres"]
        assert no_taichi_reinit == []

    def test_version(self, capsys):
        """Test --version prints the package version."""
        from prayer import __version__

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_verbose_and_quiet_conflict(self):
        """Test -v and -q cannot be combined."""
        with pytest.raises(SystemExit):
            cli.main(["presets", "-v", "-q"])
        with pytest.raises(SystemExit):
            cli.main(["preset", "spheres", "-v", "-q"])

    def test_seed_and_arch_forwarded(self, tmp_path, no_taichi_reinit):
        """Test --arch and --seed reach Taichi initialization."""
        output = tmp_path / "s.png"
        cli.main(["preset", "spheres", "-o", str(output), "--arch", "gpu", "--seed", "7", "-q", *TINY])

        args, kwargs = no_taichi_reinit[0]
        assert args == ("gpu",)
        assert kwargs["seed"] == 7
