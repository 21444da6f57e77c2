#!/usr/bin/env python3
"""Media streamer tmux launcher

Runs the Discord media streamer in a detached tmux session:
- Auto-restart on crash (--respawn)
- Output teed to a log file (--log-file)
- start/stop/restart/attach/status

``stop`` interrupts the bot first and gives it time to stop its sessions, so
playback positions are saved and backend sessions are released before the
tmux session is killed.
"""

import argparse
import os
import shlex
import shutil
import subprocess
import sys
import time
from pathlib import Path

DEFAULT_SESSION = "media_streamer"
DEFAULT_LOG_FILE = "logs/media_streamer.log"
DEFAULT_STOP_TIMEOUT = 35.0
STOP_POLL_INTERVAL = 0.5


def _default_cmd() -> str:
    """Prefer the installed console script, else run main.py with this interpreter."""
    if shutil.which("discord-media-streamer"):
        return "discord-media-streamer"
    return f"{shlex.quote(sys.executable)} src/discord_media_streamer/main.py"


DEFAULT_CMD = _default_cmd()


def run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(cmd, capture_output=True, text=True, check=False)


def has_session(name: str) -> bool:
    return run(["tmux", "has-session", "-t", name]).returncode == 0


def build_inner_command(cmd: str, log_path: Path, respawn: bool, ffmpeg_path: str | None) -> str:
    """Shell command executed inside the tmux pane.

    Loads ``.env`` when present and puts the directory of a non-default
    ffmpeg on PATH.
    """
    prelude = "set -a; [ -f .env ] && . ./.env; set +a;"
    if ffmpeg_path:
        ffmpeg_dir = Path(ffmpeg_path).resolve().parent
        prelude += f" export PATH={shlex.quote(str(ffmpeg_dir))}:$PATH;"

    inner = f"{prelude} {cmd} 2>&1 | tee -a {shlex.quote(str(log_path))}"
    if respawn:
        inner = (
            f"while true; do "
            f"{inner}; "
            f'echo "[respawn] streamer exited with code $?" ; '
            f"sleep 2; "
            f"done"
        )
    return inner


def start_session(
    session: str,
    cmd: str,
    respawn: bool,
    log_file: str | None,
    ffmpeg_path: str | None = None,
) -> None:
    if has_session(session):
        print(f"[ok] tmux session '{session}' is already running.")
        print(f"    attach:  tmux attach -t {session}")
        return

    log_path = Path(log_file or DEFAULT_LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    repo_root = Path(__file__).resolve().parent
    res = run(
        [
            "tmux",
            "new-session",
            "-d",
            "-s",
            session,
            "-c",
            str(repo_root),
            "bash",
            "-lc",
            build_inner_command(cmd, log_path, respawn, ffmpeg_path),
        ]
    )
    if res.returncode != 0:
        print(f"[err] {res.stderr.strip() or f'Failed to create tmux session {session!r}'}")
        sys.exit(1)

    time.sleep(2)
    if not has_session(session):
        print(f"[err] tmux session '{session}' failed to start.")
        print(f"      Check logs for details: {log_path}")
        sys.exit(1)

    print(f"[ok] Streamer started in tmux session '{session}'")
    print(f"    attach:  tmux attach -t {session}")
    print(f"    logs:    tail -f {log_path}")
    print("    stop:    python streamer_start.py stop")


def stop_session(session: str, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
    """Send Ctrl-C to the pane, wait for the bot to exit, then kill the session."""
    if not has_session(session):
        print(f"[ok] tmux session '{session}' is not running.")
        return

    run(["tmux", "send-keys", "-t", session, "C-c"])
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline and _pane_busy(session):
        time.sleep(STOP_POLL_INTERVAL)

    if not has_session(session):
        print(f"[ok] Stopped tmux session '{session}'.")
        return

    res = run(["tmux", "kill-session", "-t", session])
    if res.returncode != 0:
        print(f"[err] {res.stderr.strip() or f'Failed to kill session {session!r}'}")
        sys.exit(1)
    print(f"[ok] Stopped tmux session '{session}'.")


def _pane_busy(session: str) -> bool:
    """True while something other than the shell runs in the session's pane."""
    res = run(["tmux", "list-panes", "-t", session, "-F", "#{pane_current_command}"])
    if res.returncode != 0:
        return False
    return any(line.strip() not in {"bash", "sh", ""} for line in res.stdout.splitlines())


def attach_session(session: str) -> None:
    if not has_session(session):
        print(f"[err] Session '{session}' is not running.")
        print("      Start it with: python streamer_start.py start")
        sys.exit(1)
    os.execvp("tmux", ["tmux", "attach-session", "-t", session])


def status_session(session: str) -> None:
    if not has_session(session):
        print(f"[status] '{session}': NOT RUNNING")
        sys.exit(1)

    panes = run(
        ["tmux", "list-panes", "-t", session, "-F", "#{pane_pid}:#{pane_current_command}"]
    )
    print(f"[status] '{session}': RUNNING")
    if panes.returncode == 0 and panes.stdout.strip():
        for line in panes.stdout.strip().splitlines():
            pid, _, command = line.partition(":")
            print(f"  pane pid {pid}: {command}")
    else:
        print("  (no pane information available)")


def check_prerequisites(ffmpeg_path: str | None) -> None:
    """Exit with an error if tmux or ffmpeg cannot be found."""
    if shutil.which("tmux") is None:
        print("[err] tmux is not installed.")
        print("      Install with: apt install tmux  (or: brew install tmux)")
        sys.exit(1)
    if shutil.which(ffmpeg_path or "ffmpeg") is None:
        print(f"[err] ffmpeg not found ({ffmpeg_path or 'ffmpeg'}).")
        print("      Install with: apt install ffmpeg  (or pass --ffmpeg /path/to/ffmpeg)")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage the Discord media streamer in a tmux session.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s start              # Start the streamer
  %(prog)s start --respawn    # Start with auto-restart on crash
  %(prog)s attach             # Attach to running session
  %(prog)s stop               # Stop gracefully, saving playback positions
  %(prog)s restart            # Restart the streamer
  %(prog)s status             # Show session status
        """,
    )
    parser.add_argument("--session", "-s", default=DEFAULT_SESSION, help="tmux session name")
    parser.add_argument("--cmd", "-c", default=DEFAULT_CMD, help=f"command to run (default: {DEFAULT_CMD})")
    parser.add_argument(
        "--log-file", "-l", default=None, help=f"log file path (default: {DEFAULT_LOG_FILE})"
    )
    parser.add_argument("--respawn", action="store_true", help="auto-restart if the streamer exits")
    parser.add_argument("--ffmpeg", default=None, help="path to a specific ffmpeg binary")
    parser.add_argument(
        "--stop-timeout",
        type=float,
        default=DEFAULT_STOP_TIMEOUT,
        help="seconds to wait for a graceful stop before killing the session",
    )

    subparsers = parser.add_subparsers(dest="action", required=True)
    subparsers.add_parser("start", help="start the streamer in tmux")
    subparsers.add_parser("stop", help="stop the streamer")
    subparsers.add_parser("restart", help="restart the streamer")
    subparsers.add_parser("attach", help="attach to the tmux session")
    subparsers.add_parser("status", help="show session status")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    check_prerequisites(args.ffmpeg)

    session = args.session.strip().replace(" ", "_")
    cmd = args.cmd.strip()

    if args.action == "start":
        start_session(session, cmd, args.respawn, args.log_file, args.ffmpeg)
    elif args.action == "stop":
        stop_session(session, args.stop_timeout)
    elif args.action == "restart":
        stop_session(session, args.stop_timeout)
        start_session(session, cmd, args.respawn, args.log_file, args.ffmpeg)
    elif args.action == "attach":
        attach_session(session)
    elif args.action == "status":
        status_session(session)


if __name__ == "__main__":
    main()
