#!/usr/bin/env python3
"""
Bootstrap installer for BatchReplay.

On macOS/Homebrew and some Linux distros pip is blocked in the system Python
(PEP 668, "externally-managed-environment"). This script sidesteps that:
- Create a local .venv next to this file (if missing).
- Upgrade pip/setuptools/wheel inside it.
- Install this project into the venv (regular or editable, optionally with test extras).
- Optionally run a command inside the venv right away (everything after `--`).

Examples:
    python3 bootstrap.py
    python3 bootstrap.py --editable --dev
    python3 bootstrap.py -- batchreplay run records.tsv --config config.json

Afterwards the CLI runs without activating the venv:
    ./.venv/bin/batchreplay --help
"""
import argparse
import os
import subprocess
import sys
from pathlib import Path
import venv

ROOT = Path(__file__).parent.resolve()
VENV_DIR = ROOT / ".venv"
IS_WINDOWS = os.name == "nt"
BIN_DIR = VENV_DIR / ("Scripts" if IS_WINDOWS else "bin")


def venv_python() -> Path:
    return BIN_DIR / ("python.exe" if IS_WINDOWS else "python")


def ensure_venv():
    if VENV_DIR.exists():
        print(f"[bootstrap] Using existing venv: {VENV_DIR}")
        return
    print(f"[bootstrap] Creating venv at {VENV_DIR} ...")
    venv.EnvBuilder(with_pip=True, clear=False).create(str(VENV_DIR))
    print("[bootstrap] Upgrading pip/setuptools/wheel ...")
    subprocess.check_call([str(venv_python()), "-m", "pip", "install", "--upgrade", "pip", "setuptools", "wheel"])


def install_project(editable: bool, dev: bool, reinstall: bool):
    args = [str(venv_python()), "-m", "pip", "install"]
    if editable:
        args.append("-e")
    if reinstall:
        args.extend(["--upgrade", "--force-reinstall"])
    args.append(".[test]" if dev else ".")
    print("[bootstrap] Installing project:", " ".join(args))
    subprocess.check_call(args, cwd=str(ROOT))


def run_in_venv(cmd: list[str]) -> int:
    # Prepend venv bin path so console scripts are found
    env = os.environ.copy()
    env["PATH"] = str(BIN_DIR) + os.pathsep + env.get("PATH", "")
    print(f"[bootstrap] Running in venv: {' '.join(cmd)}")
    return subprocess.call(cmd, env=env, cwd=str(ROOT))


def parse_args(argv: list[str]):
    # Split our args from a possible trailing command after `--`
    if "--" in argv:
        idx = argv.index("--")
        ours, tail = argv[:idx], argv[idx + 1:]
    else:
        ours, tail = argv, []

    p = argparse.ArgumentParser(description="Create local .venv and install BatchReplay into it.")
    p.add_argument("--editable", action="store_true", help="Install in editable (-e) mode.")
    p.add_argument("--dev", action="store_true", help="Also install the test extras (pytest).")
    p.add_argument("--reinstall", action="store_true", help="Force reinstall/upgrade of the package.")
    return p.parse_args(ours), tail


def main(argv: list[str]) -> int:
    args, tail = parse_args(argv)
    try:
        ensure_venv()
        install_project(editable=args.editable, dev=args.dev, reinstall=args.reinstall)
        print(f"\n[bootstrap] Done. Run the CLI with:\n  {BIN_DIR / 'batchreplay'} --help")
        if tail:
            return run_in_venv(tail)
        return 0
    except subprocess.CalledProcessError as e:
        print(f"[bootstrap] Error: command failed with exit code {e.returncode}: {e}", file=sys.stderr)
        return e.returncode


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
