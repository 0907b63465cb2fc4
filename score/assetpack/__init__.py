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
This module combines, transforms and caches web assets - like css or
javascript files. Applications declare :term:`monikers <moniker>` like
``app.css``, which consist of one or more source files. Every moniker is
turned into one or more :term:`artifacts <artifact>`, whose file names
contain a :term:`checksum` of their sources. An artifact is only built once
for each combination of sources, consecutive builds with unchanged sources
will re-use the existing file.

In development mode, each source is built into a separate artifact. In
production, all sources of a moniker are combined into a single, minified
artifact.
"""

from ._init import init, ConfiguredAssetpackModule, AssetNotFound
from .fallback import FatalProcessingError
from .sources import ResolutionError
from .store import Artifact, StoreError
from .transforms import (
    Transform, TransformError, TransformRegistry, TransformResult)


__all__ = (
    'init', 'ConfiguredAssetpackModule', 'AssetNotFound',
    'FatalProcessingError', 'ResolutionError', 'Artifact', 'StoreError',
    'Transform', 'TransformError', 'TransformRegistry', 'TransformResult')
