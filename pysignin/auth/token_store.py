"""Pluggable token storage backends.

Provides the TokenStore ABC, keyed by account, with in-memory and OS
keyring implementations. A store is injected into ``SignInClient``; there
is no process-wide instance.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging

from abc import ABC, abstractmethod
from typing import Any

from ..types import SignInResult, Token


logger = logging.getLogger("pysignin.auth")


class TokenStore(ABC):
    """Abstract base class for sign-in result storage.

    All methods are async to support both local and blocking OS-backed stores.
    """

    @abstractmethod
    async def save(self, key: str, result: SignInResult) -> None:
        """Save a sign-in result under the given account key.

        Parameters
        ----------
        key : str
            Account identifier (the identity token's subject, usually).
        result : SignInResult
            The tokens to persist.
        """

    @abstractmethod
    async def load(self, key: str) -> SignInResult | None:
        """Load the sign-in result for the given account key.

        Returns
        -------
        SignInResult or None
            The stored result, or None if not found.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the stored result for the given account key."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a result is stored for the given account key."""

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """List all stored account keys."""


def serialize_result(result: SignInResult) -> str:
    """Serialize a SignInResult to JSON."""
    return json.dumps(
        {
            "access_token": result.access_token.token,
            "expires_at": result.access_token.expires_at,
            "id_token": result.id_token,
            "refresh_token": result.refresh_token,
            "granted_scopes": result.granted_scopes,
            "account": result.account,
        }
    )


def deserialize_result(data: str) -> SignInResult:
    """Deserialize a SignInResult from JSON.

    The nonce is not persisted; it only binds the original exchange.
    """
    obj: dict[str, Any] = json.loads(data)
    return SignInResult(
        access_token=Token(obj["access_token"], expires_at=obj.get("expires_at")),
        id_token=obj.get("id_token"),
        refresh_token=obj.get("refresh_token"),
        granted_scopes=list(obj.get("granted_scopes") or []),
        account=obj.get("account"),
    )


class MemoryTokenStore(TokenStore):
    """In-memory token store for tests and single-process use.

    Serialized on write so stored values are detached from the caller's objects.
    """

    def __init__(self) -> None:
        """Initialize the memory token store."""
        self._results: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def save(self, key: str, result: SignInResult) -> None:
        """Save a result in memory."""
        async with self._lock:
            self._results[key] = serialize_result(result)

    async def load(self, key: str) -> SignInResult | None:
        """Load a result from memory."""
        async with self._lock:
            data = self._results.get(key)
            if data is None:
                return None
            return deserialize_result(data)

    async def delete(self, key: str) -> None:
        """Delete a result from memory."""
        async with self._lock:
            self._results.pop(key, None)

    async def exists(self, key: str) -> bool:
        """Check if a result exists in memory."""
        async with self._lock:
            return key in self._results

    async def list_keys(self) -> list[str]:
        """List all account keys in memory."""
        async with self._lock:
            return list(self._results.keys())


class KeyringTokenStore(TokenStore):
    """OS keyring-backed token store for persistent credentials.

    Requires the ``keyring`` package: ``pip install pysignin[keyring]``

    The keyring API cannot enumerate entries, so the store keeps an index
    of account keys in a dedicated entry.

    Parameters
    ----------
    service_name : str
        Service name for keyring storage (default "pysignin").
    """

    _INDEX_KEY = "__accounts__"

    def __init__(self, service_name: str = "pysignin") -> None:
        """Initialize the keyring token store."""
        try:
            import keyring as _keyring

            from keyring.errors import PasswordDeleteError
        except ImportError:
            msg = "Install keyring for persistent token storage: pip install pysignin[keyring]"
            raise ImportError(msg) from None
        self._service_name = service_name
        self._keyring = _keyring
        self._delete_error = PasswordDeleteError
        self._lock = asyncio.Lock()

    async def _call(self, func: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, self._service_name, *args)

    async def _read_index(self) -> list[str]:
        data = await self._call(self._keyring.get_password, self._INDEX_KEY)
        return list(json.loads(data)) if data else []

    async def _write_index(self, keys: list[str]) -> None:
        await self._call(self._keyring.set_password, self._INDEX_KEY, json.dumps(keys))

    async def save(self, key: str, result: SignInResult) -> None:
        """Save a result to the OS keyring."""
        async with self._lock:
            await self._call(self._keyring.set_password, key, serialize_result(result))
            keys = await self._read_index()
            if key not in keys:
                await self._write_index([*keys, key])
        logger.debug("Stored tokens in keyring service %s", self._service_name)

    async def load(self, key: str) -> SignInResult | None:
        """Load a result from the OS keyring."""
        data = await self._call(self._keyring.get_password, key)
        if data is None:
            return None
        return deserialize_result(data)

    async def delete(self, key: str) -> None:
        """Delete a result from the OS keyring."""
        async with self._lock:
            with contextlib.suppress(self._delete_error):
                await self._call(self._keyring.delete_password, key)
            keys = await self._read_index()
            if key in keys:
                await self._write_index([k for k in keys if k != key])

    async def exists(self, key: str) -> bool:
        """Check if a result exists in the OS keyring."""
        return await self.load(key) is not None

    async def list_keys(self) -> list[str]:
        """List account keys recorded in the index entry."""
        return await self._read_index()


def create_token_store(backend: str = "memory", **kwargs: Any) -> TokenStore:
    """Factory function for token stores.

    Parameters
    ----------
    backend : str
        Storage backend: "memory" or "keyring".
    **kwargs : Any
        Additional keyword arguments passed to the store constructor.

    Returns
    -------
    TokenStore
        A new token store instance.
    """
    if backend == "memory":
        return MemoryTokenStore()
    if backend == "keyring":
        return KeyringTokenStore(service_name=kwargs.get("service_name", "pysignin"))
    msg = f"Unknown token store backend: {backend}"
    raise ValueError(msg)
