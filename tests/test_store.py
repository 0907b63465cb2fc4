"""Tests for the artifact store."""

from __future__ import annotations

import os
import re
from pathlib import Path

import pytest

from score.assetpack.store import Artifact, ContentStore, StoreError


def test_write_concatenates_chunks(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / 'packed')

    artifact = store.write('app-x.css', ['a {}', b'\n', 'b {}'])

    assert artifact.path == str(tmp_path / 'packed' / 'app-x.css')
    assert artifact.read() == 'a {}\nb {}'
    assert artifact.relpath == 'packed/app-x.css'


def test_failed_write_leaves_no_file(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / 'packed')

    def chunks():
        yield 'a {}'
        raise ValueError('transform exploded')

    with pytest.raises(ValueError):
        store.write('app-x.css', chunks())

    assert store.names() == []
    assert store.locate('app-x.css') is None


def test_write_into_broken_folder_raises_store_error(tmp_path: Path) -> None:
    blocker = tmp_path / 'packed'
    blocker.write_text('not a folder')
    store = ContentStore(blocker)

    with pytest.raises(StoreError):
        store.write('app-x.css', ['a {}'])


def test_locate_searches_folders_in_order(tmp_path: Path) -> None:
    first = tmp_path / 'one'
    second = tmp_path / 'two'
    for folder in (first, second):
        folder.mkdir()
        (folder / 'app-x.css').write_text(folder.name)
    store = ContentStore(tmp_path / 'out', [first, second])

    assert store.locate('app-x.css') == Artifact(str(first / 'app-x.css'))
    assert store.locate('missing.css') is None


def test_search_returns_newest_match(tmp_path: Path) -> None:
    other = tmp_path / 'other'
    other.mkdir()
    store = ContentStore(tmp_path / 'out', [other])
    old = store.write('app-old.css', ['old'])
    new = other / 'app-new.css'
    new.write_text('new')
    (other / 'unrelated-new.css').write_text('x')
    os.utime(old.path, (1000, 1000))
    os.utime(new, (2000, 2000))
    os.utime(other / 'unrelated-new.css', (3000, 3000))

    found = store.search(re.compile(r'^app-\w+\.css$'))

    assert found == Artifact(str(new))
    assert store.search(re.compile(r'^nothing$')) is None


def test_delete_is_best_effort(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / 'packed')
    store.write('app-x.css', ['x'])

    assert store.delete('app-x.css') is True
    assert store.delete('app-x.css') is False
    assert store.locate('app-x.css') is None


def test_delete_failure_is_not_an_error(tmp_path: Path) -> None:
    store = ContentStore(tmp_path / 'packed')
    (tmp_path / 'packed' / 'app-err.js').mkdir()

    assert store.delete('app-err.js') is False
    assert (tmp_path / 'packed' / 'app-err.js').is_dir()
