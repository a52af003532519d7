"""Unit tests for the studio-export command line."""

import json

import pytest

from studio_export.cli.main import EXIT_FAILED, EXIT_OK, _parse_args, extraction_mode, main
from studio_export.config import ExportConfig


def write_payload(path, title="Trip plan"):
    reply = ["Pack light and bring a map", "model"] + [None] * 18
    reply[16] = 1
    record = ["prompts/abc", None, None, None, [title], [["where should we go", "user"], reply]]
    path.write_text(")]}'\n" + json.dumps(record), encoding="utf-8")
    return path


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yml"


@pytest.mark.unit
def test_payload_to_stdout(tmp_path, config_path, capsys):
    payload = write_payload(tmp_path / "body.txt")

    code = main(["--config", str(config_path), "--stdout", "payload", str(payload)])

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert out == (
        "# Trip plan\n\n"
        "### **USER**\n\nwhere should we go\n\n---\n\n"
        "### **MODEL**\n\nPack light and bring a map\n\n---\n\n"
    )


@pytest.mark.unit
def test_payload_written_to_output_dir(tmp_path, config_path):
    payload = write_payload(tmp_path / "body.txt", title="Trip: 2024/2025")
    out_dir = tmp_path / "exports"

    code = main(["--config", str(config_path), "--output", str(out_dir), "payload", str(payload)])

    assert code == EXIT_OK
    written = out_dir / "Trip_2024_2025.md"
    assert written.read_text(encoding="utf-8").startswith("# Trip: 2024/2025\n\n")


@pytest.mark.unit
def test_title_override_and_no_user(tmp_path, config_path, capsys):
    payload = write_payload(tmp_path / "body.txt")

    code = main(
        ["--config", str(config_path), "--stdout", "--no-user", "payload", str(payload), "--title", "Renamed"]
    )

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert out.startswith("# Renamed\n\n### **MODEL**")
    assert "USER" not in out


@pytest.mark.unit
def test_payload_without_turns_fails(tmp_path, config_path):
    payload = tmp_path / "body.txt"
    payload.write_text(json.dumps([["nothing"], ["here"]]), encoding="utf-8")

    assert main(["--config", str(config_path), "--stdout", "payload", str(payload)]) == EXIT_FAILED


@pytest.mark.unit
def test_missing_payload_file_fails(tmp_path, config_path):
    assert main(["--config", str(config_path), "payload", str(tmp_path / "absent.txt")]) == EXIT_FAILED


@pytest.mark.unit
def test_payload_that_is_not_utf8_fails(tmp_path, config_path, capsys):
    payload = tmp_path / "body.txt"
    payload.write_bytes(b')]}\'\n[["\xff\xfe bad", "user"]]')

    assert main(["--config", str(config_path), "--stdout", "payload", str(payload)]) == EXIT_FAILED
    assert capsys.readouterr().out == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "configured, flag, expected",
    [("xhr", None, "xhr"), ("dom", None, "dom"), ("xhr", "dom", "dom"), ("dom", "xhr", "xhr")],
)
def test_page_mode_comes_from_config_unless_overridden(configured, flag, expected):
    argv = ["page", "https://example.test/prompts/abc"] + (["--mode", flag] if flag else [])

    assert extraction_mode(ExportConfig(extraction_mode=configured), _parse_args(argv)) == expected
