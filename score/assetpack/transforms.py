"""
Content transforms. A :class:`Transform` converts the content of a source
file, e.g. compiling sass to css or minifying javascript. Transforms are
registered for file extensions in a :class:`TransformRegistry`, which is
constructed once and never changed afterwards.
"""

import abc
import os
import re
import subprocess
from collections import namedtuple

import xxhash


TransformContext = namedtuple(
    'TransformContext', ('registry', 'minify', 'output_ext'), defaults=(None,))

TransformResult = namedtuple('TransformResult', ('content', 'dependencies'))


def ext_of(path):
    """
    Returns the extension of given *path* without the dot, or ``'unknown'``.
    """
    match = re.search(r'\.(\w+)$', os.path.basename(path))
    if match:
        return match.group(1)
    return 'unknown'


def read_bytes(path):
    with open(path, 'rb') as fp:
        return fp.read()


def as_text(content):
    """
    Decodes *content* read with :func:`read_bytes`. Bytes that are not valid
    UTF-8 survive a round trip through :func:`as_bytes` unchanged.
    """
    if isinstance(content, bytes):
        return content.decode('UTF-8', 'surrogateescape')
    return content


def as_bytes(content):
    if isinstance(content, str):
        return content.encode('UTF-8', 'surrogateescape')
    return content


def read_text(path):
    return as_text(read_bytes(path))


class Transform(abc.ABC):
    """
    A single processing step for the contents of files with one of the given
    *extensions*.

    The *name* is part of the :term:`checksum` of every file the transform
    is applied to and defaults to the name of the class.
    """

    name = None
    extensions = ()

    def __str__(self):
        return self.name or self.__class__.__name__

    def dependencies(self, ctx, content, path):
        """
        Provide a list of additional files the result of :meth:`process`
        depends on. The contents of these files participate in the checksum of
        the source at *path*.
        """
        return []

    @abc.abstractmethod
    def process(self, ctx, content, path):
        """
        Returns the processed *content* of the file at *path*. The return value
        can either be a string or a :class:`TransformResult`.

        Must raise :class:`TransformError` if the content cannot be processed.
        """


class CssImports(Transform):
    """
    Inlines ``@import`` statements referring to local css files. Imports of
    remote URLs are kept as they are.
    """

    name = 'css-imports'
    extensions = ('css',)

    regex = re.compile(
        r'''@import\s+(?:url\(\s*)?(["'])([^"')]+)\1\s*\)?\s*;''')

    def _imports(self, content, path):
        for match in self.regex.finditer(content):
            target = match.group(2)
            if '://' in target or target.startswith('//'):
                continue
            file = os.path.normpath(
                os.path.join(os.path.dirname(path), target))
            if os.path.isfile(file):
                yield match, file

    def dependencies(self, ctx, content, path):
        return [file for _, file in self._imports(content, path)]

    def process(self, ctx, content, path):
        content, files = self._inline(content, path, [path])
        return TransformResult(content, files)

    def _inline(self, content, path, stack):
        parts = []
        files = []
        offset = 0
        for match, file in self._imports(content, path):
            parts.append(content[offset:match.start()])
            offset = match.end()
            if file in stack:
                # circular import, drop it
                continue
            files.append(file)
            imported, nested = self._inline(
                read_text(file), file, stack + [file])
            files.extend(nested)
            parts.append(imported)
        parts.append(content[offset:])
        return ''.join(parts), files


class CommandTransform(Transform):
    """
    Pipes the content through an external *command*, given as an argument
    list. The command must read from stdin and write the result to stdout.
    """

    def __init__(self, name, command, extensions):
        self.name = name
        self.command = list(command)
        self.extensions = tuple(extensions)

    def process(self, ctx, content, path):
        try:
            result = subprocess.run(
                self.command, input=as_bytes(content),
                stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                cwd=os.path.dirname(path) or None)
        except OSError as e:
            raise TransformError(path, str(e)) from e
        if result.returncode != 0:
            output = result.stderr or result.stdout
            raise TransformError(path, str(output, 'UTF-8', 'replace'))
        return as_text(result.stdout)

    def __repr__(self):
        return '<CommandTransform %s: %s>' % (self.name, ' '.join(self.command))


class TransformRegistry:
    """
    An immutable table of :class:`transforms <Transform>` keyed by file
    extension. The *transforms* are applied in the given order to sources of
    matching extensions; a source with an unknown extension passes unchanged.
    The *minifiers* are a mapping of output extensions to a single transform,
    that is applied after all other transforms, if minification is requested.
    """

    def __init__(self, transforms=(), minifiers=None):
        self._transforms = tuple(transforms)
        chains = {}
        for transform in self._transforms:
            for ext in transform.extensions:
                chains.setdefault(ext, []).append(transform)
        self._chains = dict((ext, tuple(chain))
                            for ext, chain in chains.items())
        self._minifiers = dict(minifiers or {})

    @classmethod
    def default(cls):
        return cls([CssImports()])

    def extend(self, transforms=(), minifiers=None):
        """
        Returns a new registry containing all transforms of this one, followed
        by the given *transforms*. The *minifiers* replace existing ones with
        the same extension.
        """
        all_minifiers = dict(self._minifiers)
        all_minifiers.update(minifiers or {})
        return TransformRegistry(
            self._transforms + tuple(transforms), all_minifiers)

    def lookup(self, ext):
        """
        Returns the tuple of transforms for given extension *ext*.
        """
        return self._chains.get(ext, ())

    def minifier(self, ext):
        return self._minifiers.get(ext)

    def signature(self, ext, minify=False, output_ext=None):
        """
        Names the processing steps a source with extension *ext* goes through
        when it is part of an artifact with the extension *output_ext*.
        """
        names = [str(transform) for transform in self.lookup(ext)]
        minifier = self.minifier(output_ext or ext) if minify else None
        if minifier is not None:
            names.append('min:%s' % minifier)
        return '\0'.join(names)

    def checksum(self, ext, ctx, content, path, _seen=None):
        """
        Provides the :term:`checksum` of the *content* of a source file with
        given extension *ext*. The checksum covers the names of the transforms
        to apply (including the minifier of ``ctx.output_ext``), the raw bytes
        of the content and the checksums of all dependencies the transforms
        report.
        """
        if _seen is None:
            _seen = set()
        _seen.add(path)
        chain = self.lookup(ext)
        signature = self.signature(ext, ctx.minify, ctx.output_ext)
        hash = xxhash.xxh128()
        if signature:
            hash.update(signature.encode('UTF-8'))
            hash.update(b'\0')
        hash.update(as_bytes(content))
        for transform in chain:
            for file in transform.dependencies(ctx, as_text(content), path):
                if file in _seen:
                    continue
                part = self.checksum(
                    ext_of(file), ctx, read_bytes(file), file, _seen)
                hash.update(b'\0')
                hash.update(part.encode('UTF-8'))
        return hash.hexdigest()

    def transform(self, ext, ctx, content, path):
        """
        Runs all transforms registered for *ext* on given *content* and
        returns the result. Content without transforms is returned as it is.
        """
        for transform in self.lookup(ext):
            content = _content(transform.process(ctx, as_text(content), path))
        return content

    def minify(self, ext, ctx, content, path):
        """
        Applies the minifier for the output extension *ext*, if there is one.
        """
        minifier = self.minifier(ext)
        if minifier is None:
            return content
        return _content(minifier.process(ctx, as_text(content), path))


def _content(result):
    if isinstance(result, TransformResult):
        return result.content
    return result


class TransformError(Exception):
    """
    Raised by a :class:`Transform` that cannot process a file. The *output*
    contains the error message of the underlying tool.
    """

    def __init__(self, path, output):
        self.path = path
        self.output = output
        super().__init__('%s: %s' % (path, output.strip()))
