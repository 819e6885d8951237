#!/usr/bin/env python
import os
import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]


def run(cmd: list[str], env) -> int:
    print("$", " ".join(cmd))
    return subprocess.call(cmd, env=env, cwd=ROOT)


def main() -> int:
    env = os.environ.copy()
    env["MPLBACKEND"] = "Agg"
    env["PYTHONPATH"] = str(ROOT / "src") + os.pathsep + env.get("PYTHONPATH", "")

    runner = [sys.executable, "-m", "tdse_simulation.simulation.runner"]
    cases = [
        runner + ["examples/params_example_sweep.py", "--ticks", "20", "--no-save"],
        runner + ["examples/params_harmonic.yaml", "--duration", "0.5", "--no-save"],
        [sys.executable, "examples/example_realspace_tunneling.py"],
        [sys.executable, "examples/example_custom_potential.py"],
    ]

    failed = 0
    for cmd in cases:
        if run(cmd, env) != 0:
            failed += 1

    if failed:
        print(f"Smoke tests finished with {failed} failure(s)")
        return 1
    print("Smoke tests passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
