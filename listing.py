"""
listing.py — directory snapshots annotated with each file's expiry status.

Entries are sorted by name. The labels come from ``expiry.evaluate``, the
same policy the sweeper applies.
"""
import logging
import os
import posixpath
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from urllib.parse import quote

from expiry import NEVER, Verdict, evaluate, expires_at

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    path: str
    name: str
    is_dir: bool
    size: int
    last_modified: float


@dataclass(frozen=True)
class ListingRow:
    name: str
    href: str
    is_dir: bool
    size_label: str
    modified: str
    verdict: Verdict
    expires_at: Optional[int] = None

    @property
    def status(self) -> str:
        if self.verdict.expired:
            return "expired"
        if self.expires_at is not None:
            return "countdown"
        return "none"


def read_directory(path: str) -> List[FileEntry]:
    """Snapshot ``path``. Entries whose metadata cannot be read are skipped."""
    entries = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                st = entry.stat()
                is_dir = entry.is_dir()
            except OSError as e:
                log.debug("skipping %s: %s", entry.path, e)
                continue
            entries.append(FileEntry(
                path=entry.path,
                name=entry.name,
                is_dir=is_dir,
                size=0 if is_dir else st.st_size,
                last_modified=st.st_mtime,
            ))
    entries.sort(key=lambda e: e.name)
    return entries


def human_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    return f"{n / 1024:.2f} KB"


def annotate(entries: Iterable[FileEntry], expiry: float,
             now: Optional[float] = None, base: str = "/") -> List[ListingRow]:
    if now is None:
        now = time.time()

    rows = []
    for entry in entries:
        href = quote(posixpath.join(base, entry.name))
        modified = datetime.fromtimestamp(entry.last_modified).strftime("%Y-%m-%d %H:%M:%S")

        if entry.is_dir:
            rows.append(ListingRow(
                name=entry.name, href=href + "/", is_dir=True,
                size_label="-", modified=modified, verdict=NEVER,
            ))
            continue

        verdict = evaluate(entry.last_modified, now, expiry)
        deadline = None
        if not verdict.expired and verdict.remaining is not None:
            deadline = int(expires_at(entry.last_modified, expiry))
        rows.append(ListingRow(
            name=entry.name, href=href, is_dir=False,
            size_label=human_size(entry.size), modified=modified,
            verdict=verdict, expires_at=deadline,
        ))
    return rows
