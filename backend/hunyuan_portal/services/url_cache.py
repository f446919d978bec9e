"""
Signed URL cache scoped to one browsing session.

The caller creates the cache and passes it to whatever resolves model URLs;
it is dropped together with the session that owns it.
"""

from typing import Callable, Dict, Optional


class SignedUrlCache:
    """Maps storage keys to already-resolved signed URLs."""

    def __init__(self):
        self._urls: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._urls.get(key)

    def put(self, key: str, url: str) -> None:
        self._urls[key] = url

    def get_or_sign(self, key: str, signer: Callable[[str], str]) -> str:
        """Return the cached URL for ``key`` or sign it once and remember it."""
        url = self._urls.get(key)
        if url is None:
            url = signer(key)
            self._urls[key] = url
        return url

    def clear(self) -> None:
        self._urls.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._urls

    def __len__(self) -> int:
        return len(self._urls)
