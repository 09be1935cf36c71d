from __future__ import annotations

import logging
import shutil
from pathlib import Path

from flickr_backr.walker import walk


def test_walk_yields_every_file_once_depth_first(tmp_path: Path, make_file):
    make_file(tmp_path / "b.jpg", 2)
    make_file(tmp_path / "a" / "nested" / "deep.jpg", 3)
    make_file(tmp_path / "a" / "z.png", 4)
    make_file(tmp_path / "c" / "clip.mp4", 5)

    found = [path.relative_to(tmp_path).as_posix() for path, _ in walk(tmp_path)]

    assert found == ["a/nested/deep.jpg", "a/z.png", "b.jpg", "c/clip.mp4"]


def test_walk_reports_file_info(tmp_path: Path, make_file):
    make_file(tmp_path / "img1.jpg", 1000, content=b"12345")

    [(path, info)] = list(walk(tmp_path))

    assert path == tmp_path / "img1.jpg"
    assert info.name == "img1.jpg"
    assert info.mtime == 1000
    assert info.size == 5


def test_walk_missing_root_is_skipped(tmp_path: Path, caplog):
    with caplog.at_level(logging.WARNING):
        assert list(walk(tmp_path / "nope")) == []
    assert "Skipping directory" in caplog.text


def test_walk_continues_when_directory_vanishes(tmp_path: Path, make_file):
    make_file(tmp_path / "a" / "1.jpg", 1)
    make_file(tmp_path / "b" / "2.jpg", 2)
    make_file(tmp_path / "c" / "3.jpg", 3)

    walker = walk(tmp_path)
    first, _ = next(walker)
    shutil.rmtree(tmp_path / "b")
    rest = [path.name for path, _ in walker]

    assert first.name == "1.jpg"
    assert rest == ["3.jpg"]
