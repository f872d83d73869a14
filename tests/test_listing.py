from pathlib import Path

from expiry import evaluate
from listing import FileEntry, annotate, human_size, read_directory

HOUR = 3600
NOW = 1_700_000_000.0


def _file(name, age, size=10):
    return FileEntry(path=f"/w/{name}", name=name, is_dir=False, size=size,
                     last_modified=NOW - age)


def test_read_directory_sorted_snapshot(work_dir: Path, make_file):
    make_file(work_dir / "b.txt", b"hello")
    make_file(work_dir / "a.txt", b"hi")
    (work_dir / "c_dir").mkdir()

    entries = read_directory(str(work_dir))

    assert [e.name for e in entries] == ["a.txt", "b.txt", "c_dir"]
    b = entries[1]
    assert b.size == 5
    assert not b.is_dir
    assert entries[2].is_dir
    assert entries[2].size == 0


def test_read_directory_skips_broken_entries(work_dir: Path, make_file):
    make_file(work_dir / "ok.txt")
    (work_dir / "dangling").symlink_to(work_dir / "gone")

    assert [e.name for e in read_directory(str(work_dir))] == ["ok.txt"]


def test_alive_file_gets_absolute_deadline():
    (row,) = annotate([_file("a.txt", age=HOUR)], 2 * HOUR, now=NOW)

    assert row.status == "countdown"
    assert row.expires_at == int(NOW - HOUR + 2 * HOUR)
    assert row.verdict.remaining == HOUR


def test_expired_file_label():
    (row,) = annotate([_file("old.txt", age=3 * HOUR)], 2 * HOUR, now=NOW)

    assert row.status == "expired"
    assert row.expires_at is None


def test_disabled_expiry_has_no_label():
    (row,) = annotate([_file("a.txt", age=1000 * HOUR)], 0, now=NOW)

    assert row.status == "none"
    assert not row.verdict.expired


def test_directories_never_expire():
    entry = FileEntry(path="/w/sub", name="sub", is_dir=True, size=0,
                      last_modified=NOW - 100 * HOUR)
    (row,) = annotate([entry], HOUR, now=NOW)

    assert row.status == "none"
    assert row.size_label == "-"
    assert row.href == "/sub/"


def test_agrees_with_sweeper_policy_at_boundary():
    entries = [_file("edge.txt", age=HOUR), _file("inside.txt", age=HOUR - 1)]
    rows = annotate(entries, HOUR, now=NOW)

    for entry, row in zip(entries, rows):
        assert row.verdict == evaluate(entry.last_modified, NOW, HOUR)
    assert [r.status for r in rows] == ["expired", "countdown"]


def test_href_is_quoted_and_relative_to_base():
    (row,) = annotate([_file("my file.txt", age=0)], HOUR, now=NOW, base="/sub dir")
    assert row.href == "/sub%20dir/my%20file.txt"


def test_size_label():
    assert human_size(2048) == "2.00 KB"
    assert human_size(5) == "5 B"
    assert human_size(1023) == "1023 B"
