# Copyright © 2015-2018 STRG.AT GmbH, Vienna, Austria
#
# This file is part of the The SCORE Framework.
#
# The SCORE Framework and all its parts are free software: you can redistribute
# them and/or modify them under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation which is in the
# file named COPYING.LESSER.txt.
#
# The SCORE Framework and all its parts are distributed without any WARRANTY;
# without even the implied warranty of MERCHANTABILITY or FITNESS FOR A
# PARTICULAR PURPOSE. For more details see the GNU Lesser General Public
# License.
#
# If you have not received a copy of the GNU Lesser General Public License see
# http://www.gnu.org/licenses/.
#
# The License-Agreement realised between you as Licensee and STRG.AT GmbH as
# Licenser including the issue of its valid conclusion and its pre- and
# post-contractual effects is governed by the laws of Austria. Any disputes
# concerning this License-Agreement including the issue of its valid conclusion
# and its pre- and post-contractual effects are exclusively decided by the
# competent court, in whose district STRG.AT GmbH has its registered seat, at
# the discretion of STRG.AT GmbH also the competent court, in whose district the
# Licensee has his registered seat, an establishment or assets.

"""
This package :ref:`integrates <framework_integration>` the module with
pyramid.

It registers a route serving artifacts below the configured ``base_url``,
adds the configured ``headers`` to these responses and registers a handler
for the exception :exc:`AssetNotFound <score.assetpack.AssetNotFound>`, which
returns the HTTP status code ``404 - Not found``.
"""

from pyramid.response import FileResponse
import score.assetpack


def assetnotfound(exc, request):
    """
    Returns an HTTP response with status code 404. This method is registered
    in the pyramid-specific :func:`init` function.
    """
    request.response.status = 404
    return request.response


def init(confdict, configurator, registry=None, http_client=None):
    """
    Performs the following steps:

    - Initializes the generic module via :func:`score.assetpack.init`.
    - Registers the route ``score.assetpack`` serving artifacts, if the
      ``base_url`` is a path on this host.
    - Registers the view :func:`assetnotfound` for the :exc:`AssetNotFound`
      exception.
    - Adds a request method with the name of the configured ``helper``,
      returning the configured module.
    """
    assetpack = score.assetpack.init(
        confdict, registry=registry, http_client=http_client)
    if assetpack.base_url.startswith('/'):
        configurator.add_route(
            'score.assetpack', assetpack.base_url + '{filename}')
        configurator.add_view(
            ArtifactView(assetpack), route_name='score.assetpack')
    configurator.add_view(
        assetnotfound, context=score.assetpack.AssetNotFound)
    configurator.add_request_method(
        lambda request: assetpack, assetpack.helper, reify=True)
    return assetpack


class ArtifactView:
    """
    A pyramid view serving artifacts by their file name.
    """

    def __init__(self, assetpack):
        self.assetpack = assetpack

    def __call__(self, request):
        filename = request.matchdict['filename']
        artifact = self.assetpack.store.locate(filename)
        if artifact is None:
            raise score.assetpack.AssetNotFound(filename)
        response = FileResponse(artifact.path, request=request)
        for header, value in self.assetpack.headers.items():
            response.headers[header] = value
        return response
