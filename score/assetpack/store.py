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
Storage of built :term:`artifacts <artifact>`. Artifacts are immutable files
named after the :term:`checksum` of their sources, so a file that exists under
a given name always has the expected content. The :class:`ContentStore` only
ever writes into its output folder, but it can find artifacts in any number
of additional folders (usually the ``packed`` folders of all static roots).
"""
import logging
import os
import shutil
import tempfile


log = logging.getLogger(__name__)


class Artifact:
    """
    A built file on disk. Instances compare equal if they point to the same
    *path*.
    """

    def __init__(self, path):
        self.path = path

    @property
    def name(self):
        """
        The file name of this artifact, which is also the last part of its
        URL.
        """
        return os.path.basename(self.path)

    @property
    def relpath(self):
        """
        The path of this artifact as stored in mappings, i.e.
        ``packed/<name>``.
        """
        return 'packed/' + self.name

    @property
    def mtime(self):
        return os.path.getmtime(self.path)

    def read(self):
        """
        Returns the content of this artifact as a string. Bytes that are not
        valid UTF-8 are replaced.
        """
        with open(self.path, encoding='UTF-8', errors='replace',
                  newline='') as fp:
            return fp.read()

    def __eq__(self, other):
        return isinstance(other, Artifact) and other.path == self.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return '<Artifact %s>' % self.path


class ContentStore:
    """
    Repository of artifacts. The constructor argument *folder* is the output
    folder, i.e. the only place this object will write to. The optional
    *folders* list contains all folders to search for existing artifacts in
    the given order. The output folder is appended to that list, if it is not
    part of it already.
    """

    def __init__(self, folder, folders=(), debug=False):
        self.folder = os.path.abspath(folder)
        self.folders = [os.path.abspath(f) for f in folders]
        if self.folder not in self.folders:
            self.folders.append(self.folder)
        self.debug = debug
        try:
            os.makedirs(self.folder, exist_ok=True)
        except OSError as e:
            log.debug('Could not create output folder %s: %s', self.folder, e)

    @property
    def writable(self):
        return os.access(self.folder, os.W_OK)

    def locate(self, filename):
        """
        Returns the first :class:`Artifact` with the exact *filename* found in
        any of the folders, or `None` if there is none.
        """
        for folder in self.folders:
            path = os.path.join(folder, filename)
            if os.path.isfile(path):
                if self.debug:
                    log.debug('Using existing asset %s', path)
                return Artifact(path)
        return None

    def search(self, regex):
        """
        Finds the most recently modified artifact in any folder, whose file
        name matches given compiled *regex*. Returns `None` if no file matches.
        """
        candidates = []
        for folder in self.folders:
            for name in self._listdir(folder):
                if regex.search(name):
                    candidates.append(Artifact(os.path.join(folder, name)))
        if not candidates:
            return None
        candidates.sort(key=lambda artifact: artifact.mtime, reverse=True)
        return candidates[0]

    def names(self):
        """
        Lists the file names in the output folder.
        """
        return self._listdir(self.folder)

    def write(self, filename, chunks):
        """
        Writes an artifact with given *filename* into the output folder. The
        *chunks* are appended in order and may be strings or bytes. The file
        becomes visible under its final name only after all chunks were
        written successfully.
        """
        path = os.path.join(self.folder, filename)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            fd, tmppath = tempfile.mkstemp(
                dir=self.folder, prefix='.%s.' % filename, suffix='.tmp')
        except OSError as e:
            raise StoreError(self.folder, e) from e
        try:
            with os.fdopen(fd, 'wb') as fp:
                for chunk in chunks:
                    if isinstance(chunk, str):
                        chunk = chunk.encode('UTF-8', 'surrogateescape')
                    fp.write(chunk)
            os.chmod(tmppath, 0o644)
            shutil.move(tmppath, path)
        except OSError as e:
            raise StoreError(self.folder, e) from e
        finally:
            if os.path.exists(tmppath):
                os.unlink(tmppath)
        return Artifact(path)

    def delete(self, filename):
        """
        Removes the file with given *filename* from the output folder. It is
        not an error if the file does not exist.
        """
        try:
            os.unlink(os.path.join(self.folder, filename))
        except FileNotFoundError:
            return False
        except OSError as e:
            log.debug('Could not delete %s: %s', filename, e)
            return False
        return True

    def _listdir(self, folder):
        try:
            return sorted(os.listdir(folder))
        except OSError:
            return []


class StoreError(Exception):
    """
    Raised when the output folder cannot be written to.
    """

    def __init__(self, folder, error):
        self.folder = folder
        self.error = error
        super().__init__('Cannot write to %s: %s' % (folder, error))
