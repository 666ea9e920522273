from collections.abc import MutableMapping


class CaseInsensitiveDict(MutableMapping):
    """A dict whose string keys are compared case-insensitively.

    Keys are stored lower-cased, so the original casing of a key is lost.
    Updating an existing key keeps its first insertion position.
    """

    def __init__(self, data=None, **kwargs):
        self._data = {}
        self.update(data or {}, **kwargs)

    def __setitem__(self, key, value):
        self._data[key.lower()] = value

    def __getitem__(self, key):
        return self._data[key.lower()]

    def __delitem__(self, key):
        del self._data[key.lower()]

    def __contains__(self, key):
        return isinstance(key, str) and key.lower() in self._data

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __eq__(self, other):
        if isinstance(other, CaseInsensitiveDict):
            return list(self.items()) == list(other.items())

        return NotImplemented

    def __repr__(self):
        return f'{self.__class__.__name__}({self._data!r})'

    def discard(self, key):
        """Remove ``key`` if present and tell whether something was removed."""
        return self._data.pop(key.lower(), _missing) is not _missing

    def copy(self):
        return CaseInsensitiveDict(self._data)


_missing = object()
