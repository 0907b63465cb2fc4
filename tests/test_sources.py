"""Tests for resolving source references."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from score.assetpack.sources import (
    ResolutionError, SourceResolver, cache_name, name_of)
from score.assetpack.store import ContentStore


def mock_client(handler) -> httpx.Client:
    return httpx.Client(
        transport=httpx.MockTransport(handler),
        follow_redirects=True, max_redirects=3)


@pytest.fixture
def store(tmp_path: Path) -> ContentStore:
    return ContentStore(tmp_path / 'out')


def test_name_of() -> None:
    assert name_of('css/app.css') == 'app'
    assert name_of('/js/jquery.min.js') == 'jquery.min'
    assert name_of('https://cdn.test/x.js') == 'https___cdn_test_x_js'


def test_cache_name_keeps_extension() -> None:
    assert cache_name('https://cdn.test/lib/x.js?v=1') == \
        'https___cdn_test_lib_x_js_v_1.js'


def test_source_paths_are_searched_first(tmp_path: Path, store) -> None:
    sources = tmp_path / 'src'
    static = tmp_path / 'static'
    for root in (sources, static):
        (root / 'css').mkdir(parents=True)
        (root / 'css' / 'app.css').write_text(root.name)
    resolver = SourceResolver(store, [str(sources)], [str(static)])

    source = resolver.resolve('/css/app.css')

    assert source.path == str(sources / 'css' / 'app.css')
    assert source.read() == b'src'
    assert source.ext == 'css'


def test_resolution_is_memoized(public: Path, store) -> None:
    resolver = SourceResolver(store, static_paths=[str(public)])

    first = resolver.resolve('css/a.css')
    (public / 'css' / 'a.css').unlink()

    assert resolver.resolve('css/a.css') is first


def test_missing_source(public: Path, store) -> None:
    resolver = SourceResolver(store, static_paths=[str(public)])

    with pytest.raises(ResolutionError) as excinfo:
        resolver.resolve('css/missing.css')

    assert excinfo.value.ref == 'css/missing.css'
    assert str(public) in str(excinfo.value)


def test_glob_expansion(tmp_path: Path, public: Path, store) -> None:
    extra = tmp_path / 'extra'
    (extra / 'css').mkdir(parents=True)
    (extra / 'css' / 'a.css').write_text('duplicate')
    (extra / 'css' / 'c.css').write_text('c {}')
    resolver = SourceResolver(store, [str(extra)], [str(public)])

    refs = resolver.expand(['css/b.css', 'css/*.css', 'js/app.js'])

    assert refs == ['css/b.css', 'css/a.css', 'css/c.css', 'js/app.js']


def test_glob_without_matches_expands_to_nothing(public: Path, store) -> None:
    resolver = SourceResolver(store, static_paths=[str(public)])

    assert resolver.expand(['css/*.less']) == []


def test_remote_source_is_downloaded_once(public: Path, store) -> None:
    requests = []

    def handler(request):
        requests.append(request.url)
        return httpx.Response(200, content=b'var remote;')

    client = mock_client(handler)
    url = 'https://cdn.test/remote.js'

    source = SourceResolver(store, http_client=client).resolve(url)
    again = SourceResolver(store, http_client=client).resolve(url)

    assert source.read() == b'var remote;'
    assert source.ext == 'js'
    assert again.path == source.path
    assert len(requests) == 1


def test_redirects_are_followed(store) -> None:
    def handler(request):
        if request.url.path == '/final.js':
            return httpx.Response(200, content=b'final')
        return httpx.Response(
            302, headers={'Location': 'https://cdn.test/final.js'})

    resolver = SourceResolver(store, http_client=mock_client(handler))

    assert resolver.resolve('https://cdn.test/start.js').read() == b'final'


def test_redirect_loops_fail(store) -> None:
    def handler(request):
        count = int(request.url.path.strip('/') or 0)
        return httpx.Response(
            302, headers={'Location': 'https://cdn.test/%d' % (count + 1)})

    resolver = SourceResolver(store, http_client=mock_client(handler))

    with pytest.raises(ResolutionError):
        resolver.resolve('https://cdn.test/0')


def test_http_errors_fail(store) -> None:
    resolver = SourceResolver(store, http_client=mock_client(
        lambda request: httpx.Response(404)))

    with pytest.raises(ResolutionError):
        resolver.resolve('https://cdn.test/gone.js')
    assert store.names() == []


def test_unsupported_scheme(store) -> None:
    resolver = SourceResolver(store)

    with pytest.raises(ResolutionError) as excinfo:
        resolver.resolve('ftp://files.test/x.js')

    assert 'not supported' in str(excinfo.value)


def test_file_urls(tmp_path: Path, store) -> None:
    file = tmp_path / 'local.css'
    file.write_text('p {}')
    resolver = SourceResolver(store)

    assert resolver.resolve('file://%s' % file).read() == b'p {}'


def test_fallback_to_application(public: Path, store) -> None:
    def handler(request):
        assert str(request.url) == 'http://app.test/generated/config.js'
        return httpx.Response(200, content=b'var config = {};')

    resolver = SourceResolver(
        store, static_paths=[str(public)], http_client=mock_client(handler),
        app_url='http://app.test/')

    source = resolver.resolve('/generated/config.js')

    assert source.ref == '/generated/config.js'
    assert source.read() == b'var config = {};'


def test_failed_fallback_to_application(public: Path, store) -> None:
    resolver = SourceResolver(
        store, static_paths=[str(public)],
        http_client=mock_client(lambda request: httpx.Response(500)),
        app_url='http://app.test/')

    with pytest.raises(ResolutionError) as excinfo:
        resolver.resolve('generated/config.js')

    assert excinfo.value.ref == 'generated/config.js'
