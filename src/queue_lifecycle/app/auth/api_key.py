from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, status


class ApiKeyAuth:
    def __init__(self, valid_keys: set[str]) -> None:
        self.valid_keys = valid_keys

    def _matches(self, candidate: str) -> bool:
        return any(hmac.compare_digest(candidate, key) for key in self.valid_keys)

    def __call__(self, x_api_key: str | None = Header(default=None)) -> None:
        # An empty key set disables auth for local runs.
        if not self.valid_keys:
            return
        if not x_api_key or not self._matches(x_api_key):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
