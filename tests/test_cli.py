"""Tests for the command line interface."""

from __future__ import annotations

import re

from click.testing import CliRunner

from score.assetpack import AssetNotFound
from score.assetpack.cli import main
from score.assetpack.mapping import MAP_FILE


class Conf:
    """Stands in for the score configuration, which loads modules by name."""

    def __init__(self, assetpack):
        self.assetpack = assetpack

    def load(self, name):
        assert name == 'assetpack'
        return self.assetpack


def invoke(assetpack, *args):
    return CliRunner().invoke(
        main, list(args), obj={'conf': Conf(assetpack)},
        catch_exceptions=False)


def test_build_prints_urls(make_assetpack, public) -> None:
    assetpack = make_assetpack(
        lazy=True, **{'bundle.app.js': ['js/app.js', 'js/util.js']})

    result = invoke(assetpack, 'build', '--save-mapping')

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert len(lines) == 2
    assert re.match(r'^app\.js /packed/app-[0-9a-f]{32}\.js$', lines[0])
    assert re.match(r'^app\.js /packed/util-[0-9a-f]{32}\.js$', lines[1])
    assert (public / 'packed' / MAP_FILE).exists()


def test_get_inline(make_assetpack) -> None:
    assetpack = make_assetpack(minify=True)
    assetpack.add('app.js', 'js/app.js')

    result = invoke(assetpack, 'get', '--inline', 'app.js')

    assert result.output == 'CONSOLE.LOG("APP");\n\n'


def test_purge(make_assetpack, public) -> None:
    assetpack = make_assetpack(mode='production')
    assetpack.add('app.js', 'js/app.js')
    stale = public / 'packed' / ('app-%s.min.js' % ('0' * 32))
    stale.write_text('old')

    invoke(assetpack, 'purge')
    assert stale.exists()

    invoke(assetpack, 'purge', '--always')
    assert not stale.exists()


class Broken:
    """A module whose first moniker has no artifacts."""

    def __init__(self):
        self.calls = []

    def monikers(self):
        return ['broken.js', 'app.js']

    def get(self, moniker):
        self.calls.append(moniker)
        if moniker == 'broken.js':
            raise AssetNotFound(moniker)
        return ['/packed/app.js']

    def purge(self, always=None):
        self.calls.append('purge')

    def save_mapping(self):
        self.calls.append('save_mapping')


def test_purge_continues_after_missing_artifacts() -> None:
    assetpack = Broken()

    result = invoke(assetpack, 'purge')

    assert result.exit_code == 0
    assert assetpack.calls == ['broken.js', 'app.js', 'purge']


def test_save_mapping_continues_after_missing_artifacts() -> None:
    assetpack = Broken()

    result = invoke(assetpack, 'save-mapping')

    assert result.exit_code == 0
    assert assetpack.calls == ['broken.js', 'app.js', 'save_mapping']
