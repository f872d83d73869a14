#!/usr/bin/env python3
"""
cleanup.py — removes expired files from the work directory.

The server runs ``CleanupScheduler`` in the background. Without the server,
run a single pass from cron:
  */15 * * * * /opt/filehost/venv/bin/drop-cleanup --workdir /opt/filehost/uploads
"""
import logging
import os
import stat
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Sequence, Union

from expiry import evaluate
from settings import configure_logging, parse_args, resolve_settings

log = logging.getLogger(__name__)


def _file_stat(path: str) -> os.stat_result:
    return os.lstat(path)


def _walk_error(err: OSError) -> None:
    log.warning("cannot list %s: %s", err.filename, err)


# ─────────────────────────────────────────────────────────────
# SWEEP
# ─────────────────────────────────────────────────────────────
def sweep(root: Union[str, Path], expiry: float, now: Optional[float] = None) -> int:
    """Delete every regular file under ``root`` whose age reached ``expiry``.

    Directories are never removed. Errors on a single entry are logged and
    the entry is skipped; a failed delete is retried on the next pass.
    Returns the number of files deleted.
    """
    if expiry <= 0:
        log.debug("expiry disabled, skipping sweep of %s", root)
        return 0

    if now is None:
        now = time.time()
    deleted = 0

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_walk_error):
        for name in filenames:
            path = os.path.join(dirpath, name)
            try:
                st = _file_stat(path)
            except FileNotFoundError:
                log.debug("vanished before stat: %s", path)
                continue
            except OSError as e:
                log.warning("cannot stat %s: %s", path, e)
                continue

            if not stat.S_ISREG(st.st_mode):
                continue
            if not evaluate(st.st_mtime, now, expiry).expired:
                continue

            try:
                os.remove(path)
            except FileNotFoundError:
                log.debug("already removed: %s", path)
            except OSError as e:
                log.warning("failed to delete expired file %s: %s", path, e)
            else:
                log.info("deleted expired file %s", path)
                deleted += 1

    if deleted:
        log.info("sweep of %s finished, %d expired file(s) deleted", root, deleted)
    return deleted


# ─────────────────────────────────────────────────────────────
# SCHEDULER
# ─────────────────────────────────────────────────────────────
class CleanupScheduler(threading.Thread):
    """Runs ``sweep`` every ``interval`` seconds until ``stop()`` is called.

    The first pass happens one interval after ``start()``. The stop signal is
    only observed between passes.
    """

    def __init__(self, root: Union[str, Path], expiry: float, interval: float = 60.0):
        super().__init__(name="cleanup-thread", daemon=True)
        self.root = root
        self.expiry = expiry
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        log.info("cleanup task started: every %ss, expiry %.0fs, root %s",
                 self.interval, self.expiry, self.root)
        while not self._stop_event.wait(self.interval):
            try:
                sweep(self.root, self.expiry)
            except Exception:
                log.exception("cleanup pass failed")
        log.info("cleanup task stopped")

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()


# ─────────────────────────────────────────────────────────────
# CRON ENTRY POINT
# ─────────────────────────────────────────────────────────────
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv, prog="drop-cleanup")
    configure_logging(args.log_level)
    settings = resolve_settings(args)

    if not settings.work_dir.is_dir():
        print(f"[cleanup] work directory not found: {settings.work_dir}", file=sys.stderr)
        return 1

    removed = sweep(settings.work_dir.resolve(), settings.expiry_seconds)
    print(f"[cleanup] {removed} expired file(s) removed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
