"""Tests for the command-line entry point."""

import io
from pathlib import Path

import pytest
from PIL import Image

from tele.exceptions.service_errors import BadServerResponseError
from tele.main import build_parser, main
from tele.services.mocks import MockEnhancer, MockPromptCompiler
from tele.services.selector import ServiceSet


def _write_image(path, width=800, height=600):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (10, 90, 160)).save(buffer, format="JPEG")
    path.write_bytes(buffer.getvalue())
    return path


@pytest.fixture
def _fast_mocks(monkeypatch):
    monkeypatch.setenv("TELE_MOCK_LATENCY_SCALE", "0")


class _DeniedVision:
    async def analyze(self, full_image, crop_image, frame):
        raise BadServerResponseError("vision returned HTTP 401", status_code=401)


class TestBuildParser:
    def test_defaults(self):
        args = build_parser().parse_args(["shot.jpg"])
        assert args.image == Path("shot.jpg")
        assert args.zoom == 3.0
        assert tuple(args.center) == (0.5, 0.5)
        assert args.output is None
        assert args.diagnostics is False

    def test_options(self):
        args = build_parser().parse_args(
            ["shot.jpg", "--zoom", "5", "--center", "0.2", "0.8", "--output", "out.png", "--diagnostics"],
        )
        assert args.zoom == 5.0
        assert args.center == [0.2, 0.8]
        assert args.output == Path("out.png")
        assert args.diagnostics is True


@pytest.mark.usefixtures("_fast_mocks")
class TestMain:
    def test_develops_with_mocks(self, tmp_path, capsys):
        source = _write_image(tmp_path / "shot.jpg")

        exit_code = main([str(source), "--zoom", "2"])

        assert exit_code == 0
        output = tmp_path / "shot_tele.png"
        with Image.open(output) as result:
            assert result.format == "PNG"
            assert result.size == (300, 300)
        stdout = capsys.readouterr().out
        assert "[ 30%] analyzing_vision" in stdout
        assert "[ 90%] enhancing_with_ai" in stdout
        assert f"Wrote {output}" in stdout
        assert "capture " in stdout

    def test_explicit_output_and_diagnostics(self, tmp_path, capsys):
        source = _write_image(tmp_path / "shot.jpg")
        output = tmp_path / "developed.png"

        exit_code = main([str(source), "--output", str(output), "--diagnostics"])

        assert exit_code == 0
        assert output.exists()
        stdout = capsys.readouterr().out
        assert "### TELE DIAGNOSTIC REPORT ###" in stdout
        assert "[SELECTOR]" in stdout
        assert "[PIPELINE]" in stdout

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.jpg")]) == 2

    def test_not_an_image(self, tmp_path):
        source = tmp_path / "notes.jpg"
        source.write_bytes(b"plain text")
        assert main([str(source)]) == 2

    def test_failed_run(self, tmp_path, capsys, monkeypatch):
        source = _write_image(tmp_path / "shot.jpg")
        services = ServiceSet(
            vision=_DeniedVision(),
            prompt_compiler=MockPromptCompiler(latency_scale=0),
            enhancer=MockEnhancer(latency_scale=0),
        )
        monkeypatch.setattr("tele.main.build_services", lambda *args, **kwargs: services)

        exit_code = main([str(source)])

        assert exit_code == 1
        assert "Develop failed: vision returned HTTP 401" in capsys.readouterr().err
        assert not (tmp_path / "shot_tele.png").exists()
