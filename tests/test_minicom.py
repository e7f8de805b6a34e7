import io
from pathlib import Path

from console import Console
from minicom import config_path, emit_config, prompt_name, render_config


def test_render_config_fixed_line_settings() -> None:
    text = render_config("/dev/ttyUSB0", "57600")
    lines = text.splitlines()
    assert lines[0] == "#" * 72
    assert lines[-1] == "#" * 72
    assert "pu port             /dev/ttyUSB0" in lines
    assert "pu baudrate         57600" in lines
    assert "pu bits             8" in lines
    assert "pu parity           N" in lines
    assert "pu stopbits         1" in lines
    assert "pu rtscts           No" in lines


def test_config_path() -> None:
    assert config_path("board", "/etc/minicom") == Path("/etc/minicom/minirc.board")


def test_emit_without_name_prints_to_stdout() -> None:
    out = io.StringIO()
    path = emit_config("/dev/ttyS0", "9600", None, "/nonexistent", console=Console(stream=io.StringIO()), out=out)
    assert path is None
    assert "pu baudrate         9600" in out.getvalue()


def test_emit_saves_and_launches(tmp_path: Path) -> None:
    launched = []
    out = io.StringIO()
    path = emit_config(
        "/dev/ttyS0", "115200", "board", str(tmp_path),
        run_minicom=True, console=Console(stream=io.StringIO()), out=out, launcher=launched.append,
    )
    assert path == tmp_path / "minirc.board"
    assert "pu baudrate         115200" in path.read_text()
    assert out.getvalue() == ""
    assert launched == ["board"]


def test_emit_saves_without_launch(tmp_path: Path) -> None:
    launched = []
    emit_config(
        "/dev/ttyS0", "115200", "board", str(tmp_path),
        run_minicom=False, console=Console(stream=io.StringIO()), launcher=launched.append,
        out=io.StringIO(),
    )
    assert launched == []


def test_emit_falls_back_to_stdout_when_save_fails(tmp_path: Path) -> None:
    launched = []
    out = io.StringIO()
    err = io.StringIO()
    path = emit_config(
        "/dev/ttyS0", "4800", "board", str(tmp_path / "missing"),
        run_minicom=True, console=Console(stream=err), out=out, launcher=launched.append,
    )
    assert path is None
    assert "pu baudrate         4800" in out.getvalue()
    assert "Failed to write minicom config" in err.getvalue()
    assert launched == []


def test_prompt_name_strips_answer() -> None:
    err = io.StringIO()
    assert prompt_name(lambda: "board\n", Console(stream=err)) == "board"
    assert "Save serial port configuration as [stdout]" in err.getvalue()
    assert prompt_name(lambda: "", Console(stream=io.StringIO())) == ""
