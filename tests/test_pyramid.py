"""Tests for the pyramid integration."""

from __future__ import annotations

from pyramid.config import Configurator
from pyramid.request import Request, apply_request_extensions

import score.assetpack.pyramid
from score.assetpack.transforms import TransformRegistry


def make_app(public, counting, **conf):
    confdict = {
        'static_paths': [str(public)],
        'headers': 'Cache-Control: max-age=31536000',
    }
    confdict.update(conf)
    config = Configurator()
    assetpack = score.assetpack.pyramid.init(
        confdict, config, registry=TransformRegistry([counting]))
    assetpack.add('app.css', 'css/a.css')
    return config, assetpack


def test_serves_artifacts(public, counting) -> None:
    config, assetpack = make_app(public, counting)
    app = config.make_wsgi_app()
    [url] = assetpack.get('app.css')

    response = Request.blank(url).get_response(app)

    assert response.status_code == 200
    assert response.content_type == 'text/css'
    assert response.headers['Cache-Control'] == 'max-age=31536000'
    assert response.body == b'A { COLOR: RED; }\n'


def test_missing_artifact(public, counting) -> None:
    config, _ = make_app(public, counting)
    app = config.make_wsgi_app()

    response = Request.blank('/packed/nope-0.css').get_response(app)

    assert response.status_code == 404


def test_helper_request_method(public, counting) -> None:
    config, assetpack = make_app(public, counting, helper='assets')
    config.commit()
    request = Request.blank('/')
    request.registry = config.registry
    apply_request_extensions(request)

    assert request.assets is assetpack
