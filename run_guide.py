from __future__ import annotations

import argparse
import os
import signal
import subprocess
import sys
import time
import webbrowser
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def _run_with_env(cmd: list[str], *, cwd: Path, env_overrides: dict[str, str]) -> subprocess.Popen:
    env = os.environ.copy()
    env.update(env_overrides)
    return subprocess.Popen(
        cmd,
        cwd=str(cwd),
        env=env,
        stdout=None,
        stderr=None,
        shell=False,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the block guide backend (dev mode).")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--data-dir", default="", help="Overrides BLOCKGUIDE_DATA_DIR.")
    parser.add_argument("--no-browser", action="store_true")
    parser.add_argument("--no-reload", action="store_true")
    args = parser.parse_args(argv)

    root = _repo_root()
    print("[run_guide] Starting block guide backend (dev mode)")

    backend_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "blockguide.main:create_app",
        "--factory",
        "--app-dir",
        str(root / "apps" / "backend"),
        "--port",
        str(args.port),
    ]
    if not args.no_reload:
        backend_cmd.append("--reload")

    env_overrides: dict[str, str] = {}
    if args.data_dir:
        env_overrides["BLOCKGUIDE_DATA_DIR"] = str(Path(args.data_dir).resolve())

    proc = _run_with_env(backend_cmd, cwd=root, env_overrides=env_overrides)
    try:
        time.sleep(0.5)
        print("")
        print(f"[run_guide] Backend API: http://localhost:{args.port}/api/guides")
        print(f"[run_guide] Health:      http://localhost:{args.port}/api/health")
        print("")
        print("[run_guide] Press Ctrl+C to stop.")

        if not args.no_browser:
            try:
                webbrowser.open(f"http://localhost:{args.port}/api/guides", new=1)
            except webbrowser.Error:
                pass

        while True:
            code = proc.poll()
            if code is not None:
                print(f"[run_guide] Backend exited with code {code}.")
                return code
            time.sleep(0.2)
    except KeyboardInterrupt:
        return 0
    finally:
        if proc.poll() is None:
            if sys.platform.startswith("win"):
                proc.terminate()
            else:
                proc.send_signal(signal.SIGTERM)
            try:
                proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                proc.kill()


if __name__ == "__main__":
    raise SystemExit(main())
