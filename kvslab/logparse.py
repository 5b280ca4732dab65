"""Turn a timestamped IO trace into a throughput time series."""

from __future__ import annotations

import re
import sys
from typing import Iterable, Iterator, Optional

_STEP = 0.01


def parse_log(lines: Iterable[str], iops: bool) -> Iterator[tuple[float, float]]:
    """Yield ``(time, value)`` points for a trace of ``time size`` lines.

    With ``iops`` the value counts requests, otherwise it sums sizes in KB.
    Empty intervals are reported with a value of 0.
    """
    total_time = 0.0
    last_time = 0.0
    times_read = _STEP
    total_data = 0
    for line in lines:
        fields = line.split()
        if not fields:
            continue
        if len(fields) < 2:
            raise ValueError(f"malformed trace line: {line!r}")
        try:
            time = float(fields[0])
            data = int(fields[1])
        except ValueError as exc:
            raise ValueError(f"malformed trace line: {line!r}") from exc

        total_data += 1 if iops else data
        total_time += time - last_time
        if total_time >= times_read:
            while times_read < total_time - _STEP:
                yield times_read, 0
                times_read += _STEP
            value = total_data / 2.0 * 100.0
            if not iops:
                value /= 1024.0
            yield total_time, value
            times_read = time + _STEP
            total_data = 0
        last_time = time


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Print the time series of the trace file given as first argument."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) < 2:
        print("Usage: logparse <trace file> <iops>", file=sys.stderr)
        return 1
    iops = bool(_atoi(args[1]))
    try:
        with open(args[0], encoding="utf-8") as source:
            for time, value in parse_log(source, iops):
                print(f"{time:g} {value:g}")
    except OSError:
        print("Can't open Data!", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())