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

from score.init import (
    ConfiguredModule, ConfigurationError, parse_list, parse_bool)
import collections
import logging
import os
import re
import shlex
import threading

from .fallback import FallbackPolicy
from .mapping import MappingStore
from .pipeline import Pipeline, split_moniker
from .sources import SourceResolver
from .store import ContentStore
from .transforms import CommandTransform, TransformRegistry


log = logging.getLogger(__name__)

defaults = {
    'mode': 'development',
    'static_paths': [],
    'source_paths': [],
    'out_dir': None,
    'base_url': '/packed/',
    'minify': None,
    'headers': None,
    'fallback_to_latest': False,
    'helper': 'asset',
    'debug': False,
    'no_cache': False,
    'die_on_process_error': None,
    'lazy': False,
    'app_url': None,
    'timeout': 30,
}

purge_regex = re.compile(r'^(.*?)-([0-9a-f]{32})\.(\w+)$')
purge_min_regex = re.compile(r'^(.*?)-([0-9a-f]{32})\.min\.(\w+)$')


def init(confdict, registry=None, http_client=None):
    """
    Initializes this module according to :ref:`our module initialization
    guidelines <module_initialization>` with the following configuration keys:

    :confkey:`mode` :confdefault:`development`
        The mode the application runs in. The defaults of ``minify`` and
        ``die_on_process_error`` depend on whether this is ``development``.

    :confkey:`static_paths` :confdefault:`[]`
        The folders served as static files by the application. Artifacts are
        stored in and searched in the ``packed`` sub-folders of these paths.

    :confkey:`source_paths` :confdefault:`[]`
        Additional folders to search for source files. These are searched
        before the *static_paths*.

    :confkey:`out_dir` :confdefault:`None`
        The folder to write artifacts to. Will be detected automatically, if
        omitted: the ``packed`` folder of the first writable static path or
        the first readable ``packed`` folder.

    :confkey:`base_url` :confdefault:`/packed/`
        The URL prefix of all artifacts. Must end with a slash.

    :confkey:`minify` :confdefault:`False in development mode`
        Whether all sources of a moniker should be combined into a single,
        minified artifact.

    :confkey:`headers` :confdefault:`None`
        Additional HTTP headers to send with artifacts, one ``Name: value``
        pair per line.

    :confkey:`fallback_to_latest` :confdefault:`False`
        Whether the most recent artifact on disk may be used, if a moniker
        fails to build.

    :confkey:`helper` :confdefault:`asset`
        The name under which framework adaptions expose this module.

    :confkey:`debug` :confdefault:`False`
        Log details about source resolution and cache decisions.

    :confkey:`no_cache` :confdefault:`False`
        Rebuild monikers on every access, ignoring existing artifacts.

    :confkey:`die_on_process_error` :confdefault:`True outside development`
        Raise a :class:`FatalProcessingError
        <score.assetpack.fallback.FatalProcessingError>` instead of falling
        back, if a moniker fails to build.

    :confkey:`lazy` :confdefault:`False`
        Defer building monikers to their first access.

    :confkey:`app_url` :confdefault:`None`
        URL of the application itself. Sources that cannot be found on disk
        are requested relative to this URL.

    :confkey:`timeout` :confdefault:`30`
        Timeout in seconds for downloading remote sources.

    :confkey:`transform.<ext>` :faint:`[optional]`
        A shell command transforming files with the extension *ext*. It will
        receive the content on stdin and must write the result to stdout.

    :confkey:`minifier.<ext>` :faint:`[optional]`
        A shell command minifying artifacts with the extension *ext*.

    :confkey:`bundle.<moniker>` :faint:`[optional]`
        A list of sources to declare as *moniker* during initialization.

    A :class:`TransformRegistry
    <score.assetpack.transforms.TransformRegistry>` may be passed as
    *registry*, the configured commands will be added to it. The
    *http_client* is an optional :class:`httpx.Client` for downloading
    remote sources.
    """
    conf = dict(defaults.items())
    conf.update(confdict)
    development = conf['mode'] == 'development'
    static_paths = [os.path.abspath(path)
                    for path in parse_list(conf['static_paths'])]
    source_paths = [os.path.abspath(path)
                    for path in parse_list(conf['source_paths'])]
    base_url = conf['base_url']
    if not base_url.endswith('/'):
        raise ConfigurationError(
            'score.assetpack', 'base_url must end with a slash')
    out_dir = _out_dir(conf['out_dir'], static_paths)
    if conf['minify'] is None:
        minify = not development
    else:
        minify = parse_bool(conf['minify'])
    if conf['die_on_process_error'] is None:
        die_on_process_error = not development
    else:
        die_on_process_error = parse_bool(conf['die_on_process_error'])
    assetpack = ConfiguredAssetpackModule(
        static_paths, source_paths, out_dir,
        base_url=base_url,
        mode=conf['mode'],
        minify=minify,
        headers=_parse_headers(conf['headers']),
        fallback_to_latest=parse_bool(conf['fallback_to_latest']),
        helper=conf['helper'],
        debug=parse_bool(conf['debug']),
        no_cache=parse_bool(conf['no_cache']),
        die_on_process_error=die_on_process_error,
        lazy=parse_bool(conf['lazy']),
        registry=_registry(conf, registry),
        http_client=http_client,
        app_url=conf['app_url'],
        timeout=float(conf['timeout']))
    assetpack.load_mapping()
    for key, value in conf.items():
        if key.startswith('bundle.'):
            assetpack.add(key[len('bundle.'):], *parse_list(value))
    return assetpack


def _out_dir(out_dir, static_paths):
    if out_dir:
        out_dir = os.path.abspath(out_dir)
        static_dir = os.path.dirname(out_dir)
        if static_dir not in static_paths:
            static_paths.append(static_dir)
        return out_dir
    for path in static_paths:
        packed = os.path.join(path, 'packed')
        if os.access(path, os.W_OK):
            return packed
        if not out_dir and os.access(packed, os.R_OK):
            out_dir = packed
    if not out_dir:
        raise ConfigurationError(
            'score.assetpack',
            'Could not auto detect out_dir: Neither readable, nor writeable '
            '"packed" directory could be found in static paths [%s]. '
            'Maybe you forgot to pre-pack the assets?' %
            ', '.join(static_paths))
    return out_dir


def _parse_headers(value):
    if not value:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, str):
        value = value.splitlines()
    headers = {}
    for line in value:
        if not line.strip():
            continue
        name, sep, content = line.partition(':')
        if not sep:
            raise ConfigurationError(
                'score.assetpack', 'Invalid header line: %s' % line)
        headers[name.strip()] = content.strip()
    return headers


def _registry(conf, registry):
    if registry is None:
        registry = TransformRegistry.default()
    transforms = []
    minifiers = {}
    for key, value in conf.items():
        if key.startswith('transform.'):
            ext = key[len('transform.'):]
            transforms.append(
                CommandTransform(value, shlex.split(value), [ext]))
        elif key.startswith('minifier.'):
            ext = key[len('minifier.'):]
            minifiers[ext] = CommandTransform(value, shlex.split(value), [ext])
    if transforms or minifiers:
        registry = registry.extend(transforms, minifiers)
    return registry


class ConfiguredAssetpackModule(ConfiguredModule):
    """
    This module's :class:`configuration class
    <score.init.ConfiguredModule>`. It is the only object applications need
    to talk to: :term:`monikers <moniker>` are declared with :meth:`add` and
    retrieved with :meth:`get`.
    """

    def __init__(self, static_paths, source_paths, out_dir, *,
                 base_url='/packed/', mode='development', minify=False,
                 headers=None, fallback_to_latest=False, helper='asset',
                 debug=False, no_cache=False, die_on_process_error=True,
                 lazy=False, registry=None, http_client=None, app_url=None,
                 timeout=30):
        super().__init__(__package__)
        self.static_paths = static_paths
        self.source_paths = source_paths
        self.out_dir = out_dir
        self.base_url = base_url
        self.mode = mode
        self.minify = minify
        self.headers = headers or {}
        self.helper = helper
        self.debug = debug
        self.no_cache = no_cache
        self.lazy = lazy
        if registry is None:
            registry = TransformRegistry.default()
        self.registry = registry
        self.store = ContentStore(
            out_dir, [os.path.join(path, 'packed') for path in static_paths],
            debug=debug)
        self.resolver = SourceResolver(
            self.store, source_paths, static_paths, http_client=http_client,
            app_url=app_url, timeout=timeout, debug=debug)
        self.pipeline = Pipeline(
            self.resolver, registry, self.store, minify=minify, debug=debug)
        self.fallback = FallbackPolicy(
            self.store, minify=minify, fallback_to_latest=fallback_to_latest,
            die_on_error=die_on_process_error, source_paths=source_paths,
            static_paths=static_paths)
        self.mappings = MappingStore()
        self._declared = collections.OrderedDict()
        self._processed = {}
        self._built = set()
        self._locks = collections.defaultdict(threading.Lock)
        self._locks_lock = threading.Lock()

    @property
    def mapping_mode(self):
        return 'min' if self.minify else 'normal'

    def monikers(self):
        """
        Returns the list of all declared monikers.
        """
        return list(self._declared)

    def add(self, moniker, *refs):
        """
        Declares a :term:`moniker` consisting of the given source references
        *refs*. Glob patterns in *refs* are expanded immediately. The moniker
        is built right away, unless this module was configured to be lazy or
        to disable caching.
        """
        try:
            split_moniker(moniker)
        except ValueError:
            raise ConfigurationError(
                'score.assetpack', 'Invalid moniker: %s' % moniker)
        self._declared[moniker] = self.resolver.expand(refs)
        if self.no_cache or self.lazy:
            return self
        self._build(moniker)
        return self

    process = add

    def get(self, moniker, assets=False, inline=False):
        """
        Returns the URLs of the artifacts of *moniker*. If *assets* is `True`,
        the :class:`Artifact <score.assetpack.store.Artifact>` objects are
        returned instead, *inline* returns their contents.

        Raises :class:`AssetNotFound` if the moniker has no artifacts.
        """
        if moniker in self._declared:
            if self.no_cache:
                self._build(moniker, force=True)
            elif self.lazy and moniker not in self._built:
                self._build(moniker, once=True)
        artifacts = self._artifacts(moniker)
        if not artifacts:
            raise AssetNotFound(moniker)
        if assets:
            return artifacts
        if inline:
            return [artifact.read() for artifact in artifacts]
        return [self.url(artifact) for artifact in artifacts]

    def url(self, artifact):
        """
        Returns the public URL of given *artifact*.
        """
        return self.base_url + artifact.name

    def fetch(self, url):
        """
        Downloads the resource at *url*, unless it was downloaded before, and
        returns the path to the local file.
        """
        return self.resolver.fetch(url).path

    def purge(self, always=None):
        """
        Deletes all artifacts in the output folder that are not referenced by
        any moniker. Purging is skipped unless *always* is `True`, which is
        the default in development mode.
        """
        if always is None:
            always = self.mode == 'development'
        if not always:
            return self
        if not self._built:
            raise RuntimeError('purge() must be called after processing assets')
        if not self.store.writable:
            log.debug('Not purging %s: not writable', self.out_dir)
            return self
        regex = purge_min_regex if self.minify else purge_regex
        existing = set(name for name in self.store.names() if regex.match(name))
        for paths in self._processed.values():
            for path in paths:
                existing.discard(os.path.basename(path))
        for name in sorted(existing):
            self.store.delete(name)
            log.debug('Purged %s', name)
        return self

    def save_mapping(self):
        """
        Stores the current association of monikers and artifacts in the map
        file of the output folder.
        """
        if not self._processed:
            raise RuntimeError(
                'save_mapping() must be called after processing assets')
        self.mappings.save(self._processed, self.out_dir, self.mapping_mode)
        return self

    def load_mapping(self):
        """
        Loads the map files of all artifact folders. Monikers, that already
        point to artifacts, are left untouched. Artifacts that do not exist
        are skipped.
        """
        mapping = self.mappings.load(self.store.folders)[self.mapping_mode]
        for moniker, paths in mapping.items():
            if moniker in self._processed:
                continue
            paths = [path for path in paths
                     if self.store.locate(os.path.basename(path))]
            if paths:
                self._processed[moniker] = paths
        return self

    def _lock(self, moniker):
        with self._locks_lock:
            return self._locks[moniker]

    def _build(self, moniker, force=False, once=False):
        with self._lock(moniker):
            if once and moniker in self._built:
                return
            refs = self._declared[moniker]
            previous = self._artifacts(moniker)
            if self.minify:
                results = [(moniker, self.pipeline.run(moniker, refs, force))]
            else:
                results = self.pipeline.run_many(moniker, refs, force)
            artifacts = []
            for single, result in results:
                if result.error is None:
                    artifacts.append(result.artifact)
                else:
                    artifacts.extend(self.fallback.recover(
                        result.error, self._previous(single, previous)))
            self._processed[moniker] = [
                artifact.relpath for artifact in artifacts]
            self._built.add(moniker)

    def _artifacts(self, moniker):
        artifacts = []
        for path in self._processed.get(moniker, []):
            artifact = self.store.locate(os.path.basename(path))
            if artifact is not None:
                artifacts.append(artifact)
        return artifacts

    def _previous(self, moniker, artifacts):
        name, ext = split_moniker(moniker)
        regex = re.compile(r'^%s-[0-9a-f]{32}(\.min)?\.%s$' % (
            re.escape(name), re.escape(ext)))
        return [artifact for artifact in artifacts if regex.match(artifact.name)]


class AssetNotFound(Exception):
    """
    Thrown when the artifacts of a :term:`moniker` were requested, but the
    moniker is not defined or could not be built. Web applications might want
    to return the HTTP status code 404 in this case.
    """

    def __init__(self, moniker):
        self.moniker = moniker
        super().__init__("Asset '%s' is not defined." % moniker)
