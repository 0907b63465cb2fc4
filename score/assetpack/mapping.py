"""
Persistence of the association between :term:`monikers <moniker>` and the
artifacts they point to. Each artifact folder may contain a map file, which is
a JSON object with the keys ``normal`` and ``min``, one for each build mode.
"""
import json
import logging
import os


log = logging.getLogger(__name__)

MAP_FILE = '_assetpack_files.map'

MODES = ('normal', 'min')


class MappingStore:

    def __init__(self, filename=MAP_FILE):
        self.filename = filename

    def read(self, folder):
        """
        Returns the whole content of the map file in *folder*. A missing,
        empty or broken file results in an empty `dict`.
        """
        file = os.path.join(folder, self.filename)
        try:
            if not os.path.getsize(file):
                return {}
            with open(file, encoding='UTF-8') as fp:
                mapping = json.load(fp)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            log.warning('Ignoring unreadable map file %s: %s', file, e)
            return {}
        if not isinstance(mapping, dict):
            log.warning('Ignoring invalid map file %s', file)
            return {}
        return mapping

    def load(self, folders):
        """
        Reads the map files of all *folders* and merges them per mode. If a
        moniker is present in more than one file, the first one wins.
        """
        result = dict((mode, {}) for mode in MODES)
        for folder in folders:
            mapping = self.read(folder)
            for mode in MODES:
                for moniker, paths in (mapping.get(mode) or {}).items():
                    result[mode].setdefault(moniker, list(paths))
        return result

    def save(self, mapping, folder, mode):
        """
        Replaces the section *mode* of the map file in *folder* with the
        given *mapping*. Returns `False` if the folder is not writable.
        """
        if not os.access(folder, os.W_OK):
            log.debug('Cannot write %s to %s', self.filename, folder)
            return False
        file = os.path.join(folder, self.filename)
        content = self.read(folder)
        content[mode] = dict(
            (moniker, list(paths)) for moniker, paths in mapping.items())
        try:
            with open(file, 'w', encoding='UTF-8') as fp:
                json.dump(content, fp, indent=2, sort_keys=True)
        except OSError as e:
            log.debug('Cannot write %s: %s', file, e)
            return False
        return True
