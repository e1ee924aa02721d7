from pathlib import Path

import pytest

from tablesave import __version__
from tablesave.cli import load_document, main
from tablesave.errors import TableSaveError

DOC = """\
shared: &shared [1, 2, 3]
alias: *shared
name: "test"
ratio: 0.25
nested:
  flag: true
"""


def write_doc(tmp_path: Path, text: str = DOC) -> Path:
    path = tmp_path / "doc.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_document_keeps_yaml_aliases_shared(tmp_path: Path):
    graph = load_document(str(write_doc(tmp_path)))
    assert graph["shared"] is graph["alias"]
    assert graph["nested"]["flag"] is True


def test_load_document_rejects_scalars(tmp_path: Path):
    with pytest.raises(TableSaveError):
        load_document(str(write_doc(tmp_path, "42\n")))


def test_verify(tmp_path: Path, capsys):
    assert main(["verify", str(write_doc(tmp_path))]) == 0
    assert capsys.readouterr().out.startswith("ok:")


def test_render(tmp_path: Path, capsys):
    assert main(["render", str(write_doc(tmp_path))]) == 0
    out = capsys.readouterr().out
    assert out.startswith("local a = {")
    assert out.rstrip().endswith("}")
    assert "alias = a" in out


def test_encode_to_stdout(tmp_path: Path, capsys):
    assert main(["encode", str(write_doc(tmp_path)), "--name", "doc.lua"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("ESk-")
    assert out.endswith("\n\n")


def test_encode_then_decode(tmp_path: Path, capsys):
    frames = tmp_path / "frames.txt"
    out_dir = tmp_path / "scripts"
    assert main(["encode", str(write_doc(tmp_path)), "--name", "doc.lua", "-o", str(frames)]) == 0
    assert main(["decode", str(frames), "--output-dir", str(out_dir)]) == 0
    printed = capsys.readouterr().out.strip().splitlines()
    assert printed[-1] == str(out_dir / "doc.lua")
    assert (out_dir / "doc.lua").read_text(encoding="utf-8").startswith("local a = {")


def test_encode_overwrites_previous_frames(tmp_path: Path):
    frames = tmp_path / "frames.txt"
    frames.write_text("stale\n", encoding="ascii")
    assert main(["encode", str(write_doc(tmp_path)), "--name", "doc.lua", "-o", str(frames)]) == 0
    assert frames.read_text(encoding="ascii").startswith("ESk-")


def test_decode_corrupted_frames_fails(tmp_path: Path):
    frames = tmp_path / "frames.txt"
    main(["encode", str(write_doc(tmp_path)), "--name", "doc.lua", "-o", str(frames)])
    text = frames.read_text(encoding="ascii")
    frames.write_text(text[:4] + ("!" if text[4] != "!" else "#") + text[5:], encoding="ascii")
    assert main(["decode", str(frames), "--output-dir", str(tmp_path / "out")]) == 1
    assert not (tmp_path / "out" / "doc.lua").exists()


def test_config_option(tmp_path: Path, capsys):
    config = tmp_path / "codec.yaml"
    config.write_text('indent: "  "\n', encoding="utf-8")
    assert main(["--config", str(config), "render", str(write_doc(tmp_path))]) == 0
    assert "\n  alias = a" in capsys.readouterr().out


def test_bad_config_exits_with_error(tmp_path: Path):
    config = tmp_path / "codec.yaml"
    config.write_text("max_frame_symbols: 0\n", encoding="utf-8")
    assert main(["--config", str(config), "render", str(write_doc(tmp_path))]) == 1


def test_missing_input_exits_with_error(tmp_path: Path):
    assert main(["render", str(tmp_path / "missing.yaml")]) == 1


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage:" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert __version__ in capsys.readouterr().out
