"""Read-only view over the endpoint driver's node cache."""

from collections.abc import Callable, Iterator, Sequence

PathSource = Callable[[], Sequence[str]]


class NodeCache:
    """Enumerate and search the cached node paths.

    The storage belongs to the driver; every call borrows the driver's
    current snapshot and drops it once the iteration is done, so a later
    call sees whatever the driver holds by then.
    """

    def __init__(self, source: PathSource):
        self._source = source

    def enumerate(self) -> Iterator[str]:
        """Yield every cached path in browse order."""
        yield from self._source()

    def search(self, substring: str) -> Iterator[str]:
        """Yield cached paths containing substring (case-sensitive)."""
        for path in self.enumerate():
            if substring in path:
                yield path
