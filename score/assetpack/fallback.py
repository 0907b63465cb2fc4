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
Recovery from failed builds. When a :class:`Pipeline
<score.assetpack.pipeline.Pipeline>` fails, the :class:`FallbackPolicy`
decides what to serve instead:

1. the artifacts the moniker pointed to before (from an earlier build or a
   loaded mapping),
2. the most recently modified artifact of the same name on disk, if
   ``fallback_to_latest`` is enabled,
3. an :term:`error artifact`, that displays the error in the browser.

If the policy is configured to die on errors, it raises a
:class:`FatalProcessingError` instead of returning anything.
"""
import logging
import re

from .pipeline import error_name, split_moniker
from .store import StoreError


log = logging.getLogger(__name__)


def js_error(message):
    """
    Returns javascript code that displays given *message* in the browser.
    """
    message = message.replace('\\', '\\\\')
    message = message.replace("'", '"')
    message = message.replace('\n', '\\n')
    message = re.sub(r'[\s\x00-\x1f\x7f]', ' ', message)
    return "alert('%s');console.log('%s');" % (message, message)


def css_error(message):
    """
    Returns a css rule that displays given *message* on top of the page.
    """
    message = message.replace('\\', '\\\\')
    message = message.replace('"', "'")
    message = message.replace('\n', '\\A ')
    message = re.sub(r'[\s\x00-\x1f\x7f]', ' ', message)
    return (
        'html:before{background:#f00;color:#fff;font-size:14pt;'
        'position:fixed;padding:20px;z-index:9999;white-space:pre-wrap;'
        'content:"%s";}' % message)


def error_content(moniker, topic, error):
    """
    Generates the content of the error artifact for *moniker*.
    """
    message = error.replace('\r', '').rstrip('\n')
    message = '%s: %s' % (topic, message)
    if moniker.endswith('.js'):
        return js_error(message)
    return css_error(message)


class FallbackPolicy:
    """
    Chooses the artifacts to use for a failed build. The *store* is searched
    for old artifacts and receives error artifacts. The *source_paths* and
    *static_paths* are only used for logging.
    """

    def __init__(self, store, minify=False, fallback_to_latest=False,
                 die_on_error=True, source_paths=(), static_paths=()):
        self.store = store
        self.minify = minify
        self.fallback_to_latest = fallback_to_latest
        self.die_on_error = die_on_error
        self.source_paths = list(source_paths)
        self.static_paths = list(static_paths)

    def recover(self, error, previous=()):
        """
        Returns a list of artifacts to use instead of the failed build
        described by the :class:`BuildError
        <score.assetpack.pipeline.BuildError>` *error*. The *previous* list
        contains the artifacts the moniker pointed to before.
        """
        message = 'Failed to process %s: %s {source_paths=[%s], ' \
            'static_paths=[%s]}' % (
                error.topic, error.message, ','.join(self.source_paths),
                ','.join(self.static_paths))
        log.error(message)
        artifacts = list(previous)
        if not artifacts and self.fallback_to_latest:
            latest = self.latest(error.moniker)
            if latest is not None:
                artifacts = [latest]
        if self.die_on_error:
            raise FatalProcessingError(error, message) from error.exception
        if artifacts:
            log.warning('Using %s for %s', ', '.join(
                artifact.name for artifact in artifacts), error.moniker)
            return artifacts
        content = error_content(error.moniker, error.topic, error.message)
        try:
            return [self.store.write(error_name(error.moniker), [content])]
        except StoreError as e:
            log.debug('Cannot write error asset for %s: %s',
                      error.moniker, e)
            return []

    def latest(self, moniker):
        """
        Returns the most recently modified artifact on disk that was built for
        *moniker*, or `None`.
        """
        name, ext = split_moniker(moniker)
        if self.minify:
            pattern = r'^%s-[0-9a-f]{32}(\.min)?\.%s$'
        else:
            pattern = r'^%s-[0-9a-f]{32}\.%s$'
        regex = re.compile(pattern % (re.escape(name), re.escape(ext)))
        return self.store.search(regex)


class FatalProcessingError(Exception):
    """
    Raised instead of returning a fallback, if the policy was configured to
    die on processing errors.
    """

    def __init__(self, error, message):
        self.error = error
        super().__init__(message)
