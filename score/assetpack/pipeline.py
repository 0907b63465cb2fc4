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
The build process of a single :term:`moniker`. A :class:`Pipeline` resolves
the sources of a moniker, calculates their :term:`checksums <checksum>` and
either finds an existing :term:`artifact` with the resulting name or builds a
new one. It never raises on build errors; instead it returns a
:class:`BuildResult` describing the failure.
"""
import logging
import os
import re
from collections import namedtuple

import xxhash

from .sources import ResolutionError, name_of
from .transforms import TransformContext


log = logging.getLogger(__name__)


BuildResult = namedtuple('BuildResult', ('artifact', 'error'))


class BuildError(namedtuple('BuildError', ('moniker', 'topic', 'exception'))):
    """
    Describes a failed build of *moniker*. The *topic* is the source that was
    being processed when the *exception* occurred.
    """

    @property
    def message(self):
        return str(self.exception).rstrip()


def split_moniker(moniker):
    """
    Splits a moniker like ``app.css`` into name and extension.
    """
    match = re.match(r'^(.+)\.(\w+)$', moniker)
    if not match:
        raise ValueError('Invalid moniker: %s' % moniker)
    return match.group(1), match.group(2)


def artifact_name(name, checksum, ext, minify=False):
    if minify:
        return '%s-%s.min.%s' % (name, checksum, ext)
    return '%s-%s.%s' % (name, checksum, ext)


def error_name(moniker):
    """
    Returns the file name of the :term:`error artifact` of given *moniker*.
    """
    name, ext = split_moniker(moniker)
    return '%s-err.%s' % (name, ext)


def combine_checksums(checksums):
    """
    Reduces a list of checksums to a single one. The order of the list is
    relevant.
    """
    if len(checksums) == 1:
        return checksums[0]
    return xxhash.xxh128(''.join(checksums).encode('UTF-8')).hexdigest()


class Pipeline:
    """
    Builds artifacts using the given :class:`SourceResolver
    <score.assetpack.sources.SourceResolver>`, :class:`TransformRegistry
    <score.assetpack.transforms.TransformRegistry>` and :class:`ContentStore
    <score.assetpack.store.ContentStore>`.
    """

    def __init__(self, resolver, registry, store, minify=False, debug=False):
        self.resolver = resolver
        self.registry = registry
        self.store = store
        self.minify = minify
        self.debug = debug

    def run(self, moniker, refs, force=False):
        """
        Builds a single artifact for *moniker* from the sources listed in
        *refs*. An existing artifact with the same checksum is returned
        without processing any sources, unless *force* is `True`.
        """
        name, ext = split_moniker(moniker)
        ctx = TransformContext(self.registry, self.minify, ext)
        topic = moniker
        try:
            if not refs:
                raise ResolutionError(moniker, 'No sources defined')
            sources = []
            checksums = []
            for ref in refs:
                topic = ref
                source = self.resolver.resolve(ref)
                sources.append(source)
                checksums.append(self.registry.checksum(
                    source.ext, ctx, source.read(), source.path))
            filename = artifact_name(
                name, combine_checksums(checksums), ext, self.minify)
            if not force:
                artifact = self.store.locate(filename)
                if artifact is not None:
                    return BuildResult(artifact, None)
            if self.debug:
                log.debug('Creating %s from %s', filename,
                          ', '.join(source.path for source in sources))
            chunks = []
            for source in sources:
                topic = os.path.basename(source.path)
                content = self.registry.transform(
                    source.ext, ctx, source.read(), source.path)
                if self.minify:
                    content = self.registry.minify(
                        ext, ctx, content, source.path)
                chunks.append(content)
            artifact = self.store.write(filename, chunks)
            self.store.delete(error_name(moniker))
        except Exception as e:
            return BuildResult(None, BuildError(moniker, topic, e))
        log.info('Built %s', artifact.path)
        return BuildResult(artifact, None)

    def run_many(self, moniker, refs, force=False):
        """
        Builds one artifact per source in *refs*. Each source is built as if
        it were its own moniker consisting of the source's name and the
        extension of *moniker*. Returns a list of ``(moniker, BuildResult)``
        tuples.
        """
        _, ext = split_moniker(moniker)
        results = []
        for ref in refs:
            single = '%s.%s' % (name_of(ref), ext)
            results.append((single, self.run(single, [ref], force)))
        return results
