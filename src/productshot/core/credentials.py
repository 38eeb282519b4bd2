"""Credential pool parsing and lookup.

The generation service is load-balanced across several interchangeable API
keys.  Keys are supplied as a single string of comma and/or newline separated
tokens, for example::

    PRODUCTSHOT_API_KEYS="key-one, key-two
    key-three"

Lookup order
------------
:func:`load_credential_pool` walks a simple precedence chain and stops at the
first source that yields a non-empty string:

1. Each variable named in ``sources``, read from the process environment.
2. The same variable names, read from a dotenv file (``python-dotenv``).
3. A plain key file, if one is configured.

Nothing is cached.  The dispatcher calls :func:`load_credential_pool` once per
dispatch so that edits to the environment or key files take effect without a
restart.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[,\n]+")


class ConfigurationError(Exception):
    """Raised when no usable credentials are configured.

    This is an operator problem, not a remote-service failure, and is never
    retried.
    """

    pass


def redact(credential: str, visible: int = 4) -> str:
    """Return a short, log-safe form of a credential (``...abcd``)."""
    if not credential:
        return "..."
    return "..." + credential[-visible:]


@dataclass(frozen=True)
class CredentialPool:
    """Ordered, immutable collection of opaque credential strings.

    Attributes:
        credentials: Parsed tokens in the order they were configured.
        source: Human-readable name of the source the tokens came from.
    """

    credentials: tuple[str, ...]
    source: str = "<inline>"

    @classmethod
    def parse(cls, raw: str | None, source: str = "<inline>") -> CredentialPool:
        """Parse a comma/newline separated credential string.

        Whitespace around each token is stripped and empty tokens are
        discarded.  Duplicate tokens are kept.

        Args:
            raw: Raw configuration value.  ``None`` is treated as empty.
            source: Name recorded on the pool for diagnostics.

        Returns:
            A pool, possibly empty.  Use :meth:`require_non_empty` before
            dispatching.
        """
        if not raw:
            return cls((), source)
        tokens = tuple(t.strip() for t in _SEPARATORS.split(raw) if t.strip())
        return cls(tokens, source)

    def __len__(self) -> int:
        return len(self.credentials)

    def __iter__(self):
        return iter(self.credentials)

    def require_non_empty(self) -> CredentialPool:
        """Return ``self``, or raise :class:`ConfigurationError` if empty."""
        if not self.credentials:
            raise ConfigurationError("no credentials configured")
        return self


def _read_key_file(path: Path) -> str | None:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def load_credential_pool(
    sources: Iterable[str],
    *,
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = None,
    key_file: Path | None = None,
) -> CredentialPool:
    """Build a credential pool from the first non-empty configured source.

    Args:
        sources: Variable names to try, highest priority first.
        environ: Environment mapping.  Defaults to ``os.environ``.
        env_file: Optional dotenv file searched for the same names.
        key_file: Optional plain key file searched last.

    Returns:
        A non-empty :class:`CredentialPool`.

    Raises:
        ConfigurationError: If every source is missing or parses to zero
            tokens.
    """
    env = os.environ if environ is None else environ
    names = list(sources)

    for name in names:
        pool = CredentialPool.parse(env.get(name), source=f"env:{name}")
        if pool:
            return pool

    if env_file is not None and env_file.is_file():
        file_values = dotenv_values(env_file)
        for name in names:
            pool = CredentialPool.parse(file_values.get(name), source=f"{env_file}:{name}")
            if pool:
                return pool

    if key_file is not None:
        pool = CredentialPool.parse(_read_key_file(key_file), source=str(key_file))
        if pool:
            return pool

    logger.error("No credentials found in %s", ", ".join(names) or "any configured source")
    raise ConfigurationError("no credentials configured")
