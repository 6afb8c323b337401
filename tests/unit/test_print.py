"""Unit tests for `lxcify/print.py`"""

import io

import pytest

from lxcify.print import Reporter, fgcolor, print_color, quiet_reporter


def test_print_color(capsys: pytest.CaptureFixture[str]):
    """check the color codes around the message"""
    print_color("hello", fg=fgcolor.green)
    assert capsys.readouterr().out == f"{fgcolor.green}hello{fgcolor.reset}\n"
    print_color("plain", end="")
    assert capsys.readouterr().out == "plain"


def test_reporter_levels(capsys: pytest.CaptureFixture[str]):
    """check the messages shown at each level"""
    reporter = Reporter()
    assert not reporter.verbose
    reporter.debug("debug message")
    reporter.info("info message")
    reporter.warn("warn message")
    reporter.error("error message")
    captured = capsys.readouterr()
    assert "debug message" not in captured.out
    assert "info message" in captured.out
    assert "warn message" in captured.out
    assert "error message" in captured.err
    assert "error message" not in captured.out

    Reporter(verbose=True).debug("debug message")
    assert "debug message" in capsys.readouterr().out


def test_quiet_reporter(capsys: pytest.CaptureFixture[str]):
    """check that a quiet reporter only shows errors"""
    reporter = quiet_reporter()
    reporter.info("info message")
    reporter.notice("notice message")
    reporter.success("done")
    reporter.error("error message")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "error message" in captured.err
    assert not Reporter(verbose=True, quiet=True).verbose


def test_reporter_file():
    """check that messages other than errors go to the given file"""
    out = io.StringIO()
    Reporter(file=out).success("created")
    assert out.getvalue() == f"{fgcolor.green}created{fgcolor.reset}\n"
