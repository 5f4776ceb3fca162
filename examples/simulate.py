"""
Workload for trying pyshadow.

Writes a temporary file twice and reads it back after each write, keeping a
copy of the data alive every round so memory keeps growing, prints to both
streams and then idles so the final figures stay on screen.

Usage:
    pyshadow python examples/simulate.py [--size MIB] [--sleep SECONDS]
"""

import argparse
import sys
import tempfile
import time

ROUNDS = 2

# Copies kept alive on purpose so resident memory grows each round
leaked: list[bytes] = []


def simulate(size: int, sleep: float) -> None:
    """Run the disk and memory workload with ``size`` bytes per write."""
    data = b"\x08" * size
    with tempfile.NamedTemporaryFile() as file:
        for _ in range(ROUNDS):
            file.write(data)
            file.flush()
            print("wrote data to file", flush=True)

            with open(file.name, "rb") as read_file:
                buffer = read_file.read()
            print(f"read {len(buffer)} bytes from file", flush=True)

            leaked.append(bytes(data))

        print("finished writes", file=sys.stderr, flush=True)
        time.sleep(sleep)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Disk and memory workload for pyshadow.")
    parser.add_argument("--size", type=float, default=64, help="MiB written per round (default: 64)")
    parser.add_argument("--sleep", type=float, default=4.0, help="seconds to idle at the end (default: 4)")
    args = parser.parse_args(argv)

    simulate(int(args.size * 1024 * 1024), args.sleep)
    return 0


if __name__ == "__main__":
    sys.exit(main())
