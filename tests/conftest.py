from __future__ import annotations

from pathlib import Path

import pytest

import score.assetpack
from score.assetpack.transforms import Transform, TransformError, TransformRegistry


class CountingTransform(Transform):
    """Upper-cases content and counts its invocations."""

    name = 'counting'

    def __init__(self, extensions=('css', 'js', 'scss')):
        self.extensions = extensions
        self.calls = 0

    def process(self, ctx, content, path):
        self.calls += 1
        if 'SYNTAX ERROR' in content:
            raise TransformError(path, "Unexpected 'token'\non line 1\n")
        return content.upper()


@pytest.fixture
def public(tmp_path: Path) -> Path:
    root = tmp_path / 'public'
    (root / 'css').mkdir(parents=True)
    (root / 'js').mkdir()
    (root / 'css' / 'a.css').write_text('a { color: red; }\n')
    (root / 'css' / 'b.css').write_text('b { color: blue; }\n')
    (root / 'css' / 'a.scss').write_text('$c: red; a { color: $c; }\n')
    (root / 'css' / 'b.scss').write_text('$c: blue; b { color: $c; }\n')
    (root / 'js' / 'app.js').write_text('console.log("app");\n')
    (root / 'js' / 'util.js').write_text('function util() {}\n')
    return root


@pytest.fixture
def counting() -> CountingTransform:
    return CountingTransform()


@pytest.fixture
def make_assetpack(public: Path, counting: CountingTransform):
    """Create a configured module serving the ``public`` fixture folder."""

    def make(**conf):
        confdict = {'static_paths': [str(public)]}
        confdict.update(conf)
        registry = confdict.pop('registry', TransformRegistry([counting]))
        http_client = confdict.pop('http_client', None)
        return score.assetpack.init(
            confdict, registry=registry, http_client=http_client)

    return make
