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
Resolution of :term:`source references <source reference>` to actual files.
A reference may be a path relative to one of the search folders, a glob
pattern or a URL. Remote files are downloaded once and kept in the output
folder of the :class:`ContentStore <score.assetpack.store.ContentStore>`.
"""
import abc
import glob
import logging
import os
import re
from urllib.parse import urljoin, urlparse

import httpx

from .transforms import ext_of, read_bytes


log = logging.getLogger(__name__)


def name_of(ref):
    """
    Returns the name of the artifact built from the source *ref*: the file
    name without extension for local files, a sanitized version of the whole
    URL for remote ones.
    """
    if re.match(r'^https?:', ref):
        return re.sub(r'[^\w-]', '_', ref)
    name = os.path.basename(ref)
    match = re.match(r'^(.*)\.', name)
    if match:
        return match.group(1)
    return name


def cache_name(url):
    """
    Returns the file name a downloaded *url* is stored under.
    """
    return '%s.%s' % (re.sub(r'[^\w-]', '_', url), ext_of(urlparse(url).path))


class Source:
    """
    A resolved source file. The *ref* is the reference as declared by the
    application, the *path* is the file on disk.
    """

    def __init__(self, ref, path):
        self.ref = ref
        self.path = path

    @property
    def ext(self):
        return ext_of(self.path)

    def read(self):
        return read_bytes(self.path)

    def __repr__(self):
        return '<Source %s (%s)>' % (self.ref, self.path)


class Handler(abc.ABC):
    """
    Downloads the content of URLs with one of the given *schemes*.
    """

    schemes = ()

    @abc.abstractmethod
    def fetch(self, url):
        """
        Returns the content found at *url* as bytes. Raises
        :class:`ResolutionError` on failure.
        """


class HttpHandler(Handler):
    """
    Fetches http and https URLs, following at most *max_redirects*
    redirects.
    """

    schemes = ('http', 'https')

    def __init__(self, client=None, max_redirects=3, timeout=30):
        self._client = client
        self.max_redirects = max_redirects
        self.timeout = timeout

    @property
    def client(self):
        if self._client is None:
            self._client = httpx.Client(
                follow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=self.timeout)
        return self._client

    def fetch(self, url):
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ResolutionError(url, str(e)) from e
        return response.content


class FileHandler(Handler):

    schemes = ('file',)

    def fetch(self, url):
        try:
            with open(urlparse(url).path, 'rb') as fp:
                return fp.read()
        except OSError as e:
            raise ResolutionError(url, str(e)) from e


class SourceResolver:
    """
    Turns references into :class:`Source` objects. Local files are searched
    in *source_paths* first and in *static_paths* afterwards. Downloaded files
    are stored in the given :class:`ContentStore
    <score.assetpack.store.ContentStore>`.

    Every reference is resolved only once, consecutive calls to
    :meth:`resolve` return the same object.
    """

    def __init__(self, store, source_paths=(), static_paths=(),
                 http_client=None, app_url=None, timeout=30, debug=False):
        self.store = store
        self.source_paths = list(source_paths)
        self.static_paths = list(static_paths)
        self.app_url = app_url
        self.debug = debug
        http = HttpHandler(http_client, timeout=timeout)
        self.handlers = {
            'http': http,
            'https': http,
            'file': FileHandler(),
        }
        self._sources = {}

    @property
    def search_paths(self):
        return self.source_paths + self.static_paths

    def handler(self, scheme):
        try:
            return self.handlers[scheme]
        except KeyError:
            raise ResolutionError(
                scheme, 'URL scheme "%s" is not supported' % scheme)

    def expand(self, refs):
        """
        Expands all glob patterns in given list of *refs*. A reference is
        treated as a pattern if it contains an asterisk and does not exist as
        a file. Matches are sorted and each relative path is returned only
        once.
        """
        result = []
        seen = set()
        for ref in refs:
            if '*' not in ref or os.path.exists(ref):
                result.append(ref)
                seen.add(ref)
                continue
            reldir, pattern = os.path.split(ref.lstrip('/'))
            for root in self.search_paths:
                folder = os.path.join(root, reldir)
                matches = sorted(
                    os.path.basename(path)
                    for path in glob.glob(os.path.join(folder, pattern)))
                for name in matches:
                    relpath = '/'.join(filter(None, (reldir, name)))
                    if relpath in seen:
                        continue
                    seen.add(relpath)
                    result.append(relpath)
        return result

    def resolve(self, ref):
        """
        Returns the :class:`Source` for given *ref*, raising
        :class:`ResolutionError` if it cannot be found.
        """
        if ref in self._sources:
            if self.debug:
                log.debug('Asset already loaded: %s', ref)
            return self._sources[ref]
        if urlparse(ref).scheme:
            if self.debug:
                log.debug('Asset from online resource: %s', ref)
            source = self.fetch(ref)
        else:
            source = self._find(ref)
        self._sources[ref] = source
        return source

    def fetch(self, url):
        """
        Downloads the content at *url* into the output folder, unless it was
        downloaded before, and returns the resulting :class:`Source`.
        """
        filename = cache_name(url)
        artifact = self.store.locate(filename)
        if artifact is None:
            content = self.handler(urlparse(url).scheme).fetch(url)
            artifact = self.store.write(filename, [content])
            log.info('Downloaded %s to %s', url, artifact.path)
        return Source(url, artifact.path)

    def _find(self, ref):
        parts = ref.lstrip('/').split('/')
        for root in self.search_paths:
            file = os.path.join(root, *parts)
            if os.path.isfile(file) and os.access(file, os.R_OK):
                if self.debug:
                    log.debug('Asset from disk: %s (%s)', ref, file)
                return Source(ref, file)
        if self.app_url:
            url = urljoin(self.app_url, ref.lstrip('/'))
            if self.debug:
                log.debug('Asset from application: %s (%s)', ref, url)
            try:
                source = self.fetch(url)
            except ResolutionError as e:
                raise ResolutionError(ref, '%s (searched %s)' % (
                    e.reason, ', '.join(self.search_paths))) from e
            return Source(ref, source.path)
        raise ResolutionError(ref, 'Not found in %s' % (
            ', '.join(self.search_paths) or 'any search path'))


class ResolutionError(Exception):
    """
    Raised when a source cannot be found, neither on disk nor online.
    """

    def __init__(self, ref, reason):
        self.ref = ref
        self.reason = reason
        super().__init__('%s: %s' % (ref, reason))
