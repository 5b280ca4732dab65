import pytest

from kvslab.logparse import main, parse_log


def test_no_output_before_first_interval():
    assert list(parse_log(["0.005 100"], iops=False)) == []


def test_gap_filling_and_final_value():
    points = list(parse_log(["0.5 2048"], iops=False))
    assert points[-1] == (pytest.approx(0.5), pytest.approx(100.0))
    gaps = points[:-1]
    assert gaps
    assert all(value == 0 for _, value in gaps)
    times = [t for t, _ in points]
    assert times == sorted(times)
    assert all(t < 0.5 for t, _ in gaps)


def test_iops_counts_requests():
    points = list(parse_log(["0.5 2048"], iops=True))
    assert points[-1][1] == pytest.approx(50.0)


def test_data_reset_after_emit():
    points = list(parse_log(["0.5 2048", "1.0 2048"], iops=False))
    non_zero = [v for _, v in points if v]
    assert len(non_zero) == 2
    assert non_zero[0] == pytest.approx(non_zero[1])


def test_blank_lines_are_skipped():
    with_blank = list(parse_log(["0.5 2048", "", "  "], iops=False))
    without = list(parse_log(["0.5 2048"], iops=False))
    assert with_blank == without


def test_malformed_line_raises():
    with pytest.raises(ValueError):
        list(parse_log(["abc def"], iops=False))
    with pytest.raises(ValueError):
        list(parse_log(["0.5"], iops=False))


def test_main_prints_series(tmp_path, capsys):
    trace = tmp_path / "trace.log"
    trace.write_text("0.5 2048\n", encoding="utf-8")
    assert main([str(trace), "0"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[-1] == "0.5 100"
    assert lines[0] == "0.01 0"


def test_main_usage_error(capsys):
    assert main(["only-one"]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.log"), "1"]) == 1
    assert "Can't open Data!" in capsys.readouterr().err