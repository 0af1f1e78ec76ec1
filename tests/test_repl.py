import pytest

from exprcalc.repl import main


def test_one_shot_expression(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-e", "2+3*4"]) == 0
    assert capsys.readouterr().out == "14\n"


def test_one_shot_error_shows_position(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-e", "1+foo"]) == 1
    assert capsys.readouterr().out.splitlines() == ["Error at position 3", "1+foo", "  ^"]


@pytest.mark.parametrize(
    "args, code, expected",
    [
        pytest.param([], "2^2^3", "64"),
        pytest.param(["--pow-right"], "2^2^3", "256"),
        pytest.param(["--natural-log"], "log e", "1"),
    ],
)
def test_options(args: list[str], code: str, expected: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(args + ["-e", code]) == 0
    assert capsys.readouterr().out == expected + "\n"


def test_interactive_session(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    lines = iter(["1+1", "", "(", "sqrt 2", "quit", "3"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(lines))
    assert main([]) == 0
    assert capsys.readouterr().out.splitlines() == ["2", "Error at position 2", "(", " ^", "1.41421"]


def test_interactive_session_ends_on_eof(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    def eof(prompt: str) -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", eof)
    assert main([]) == 0
    assert capsys.readouterr().out == ""
