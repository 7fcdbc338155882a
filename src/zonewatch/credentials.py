"""Bearer token resolution from an ordered list of sources.

Sources are tried in priority order and the first one that yields a
non-empty token wins outright; records from different sources are never
merged. An in-memory override always outranks every source.

Example:
    resolver = CredentialResolver.from_settings(get_settings())
    record = resolver.resolve()
    if record is None:
        ...  # not configured
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from zonewatch.config import Settings
from zonewatch.models import CredentialRecord

logger = logging.getLogger(__name__)


def parse_flat_config(content: str) -> dict[str, str]:
    """Parse flat ``key = value`` lines, skipping ``#`` comments and unquoting values."""
    config: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        if key:
            config[key] = value
    return config


class CredentialSource(Protocol):
    name: str

    def read(self) -> CredentialRecord | None: ...


class SettingsStore:
    """Persisted application setting holding the token entered by the user."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> dict[str, str]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def save(self, token: str, account_id: str | None = None) -> None:
        data = self.load()
        # A new token replaces the whole record, account included.
        data.pop("account_id", None)
        data["api_token"] = token
        if account_id:
            data["account_id"] = account_id
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.debug("Saved API token to %s", self.path)

    def clear(self) -> None:
        data = self.load()
        if not data:
            return
        data.pop("api_token", None)
        data.pop("account_id", None)
        if data:
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        else:
            self.path.unlink(missing_ok=True)
        logger.debug("Removed stored API token from %s", self.path)


class StoredSettingSource:
    name = "settings"

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    def read(self) -> CredentialRecord | None:
        data = self._store.load()
        token = data.get("api_token", "")
        if not token:
            return None
        return CredentialRecord(
            token=token,
            account_id=data.get("account_id") or None,
            source=self.name,
        )


class EnvironmentSource:
    name = "environment"

    def __init__(
        self,
        token_var: str,
        account_var: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._token_var = token_var
        self._account_var = account_var
        self._environ = environ

    def read(self) -> CredentialRecord | None:
        environ = os.environ if self._environ is None else self._environ
        token = environ.get(self._token_var, "")
        if not token:
            return None
        account_id = environ.get(self._account_var, "") if self._account_var else ""
        return CredentialRecord(
            token=token, account_id=account_id or None, source=self.name
        )


class ConfigFileSource:
    """Well-known config files (Wrangler's ``default.toml``) read as flat key=value text."""

    name = "config-file"

    def __init__(
        self,
        paths: Sequence[Path],
        *,
        token_key: str = "api_token",
        account_key: str = "account_id",
    ) -> None:
        self._paths = list(paths)
        self._token_key = token_key
        self._account_key = account_key

    def read(self) -> CredentialRecord | None:
        for path in self._paths:
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            config = parse_flat_config(content)
            token = config.get(self._token_key, "")
            if token:
                return CredentialRecord(
                    token=token,
                    account_id=config.get(self._account_key) or None,
                    source=f"{self.name}:{path}",
                )
        return None


class CredentialResolver:
    """Resolves and caches the active credential record."""

    def __init__(self, sources: Sequence[CredentialSource]) -> None:
        self._sources = list(sources)
        self._override: CredentialRecord | None = None
        self._cached: CredentialRecord | None = None
        self._resolved = False

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialResolver:
        return cls(
            [
                StoredSettingSource(SettingsStore(settings.settings_file)),
                EnvironmentSource(settings.token_env_var, settings.account_env_var),
                ConfigFileSource(
                    settings.config_paths,
                    token_key=settings.config_token_key,
                    account_key=settings.config_account_key,
                ),
            ]
        )

    @property
    def current(self) -> CredentialRecord | None:
        """The record API calls should use right now."""
        if self._override is not None:
            return self._override
        if not self._resolved:
            return self.resolve()
        return self._cached

    @property
    def token(self) -> str | None:
        record = self.current
        return record.token if record else None

    def set_override(self, token: str, account_id: str | None = None) -> None:
        """Set a token programmatically; takes effect on the next call without reload."""
        token = token.strip()
        if not token:
            self._override = None
            return
        self._override = CredentialRecord(
            token=token, account_id=account_id or None, source="override"
        )

    def clear_override(self) -> None:
        self._override = None

    def resolve(self) -> CredentialRecord | None:
        """Return the first non-empty record in priority order, or None."""
        record = self._override
        if record is None:
            record = self._read_sources()
            self._cached = record
            self._resolved = True

        if record is None:
            logger.debug("No API token found in %d sources", len(self._sources))
        else:
            logger.debug("Resolved API token from %s", record.source)
        return record

    def _read_sources(self) -> CredentialRecord | None:
        for source in self._sources:
            record = source.read()
            if record is not None and record.token:
                return record
        return None

    def reload(self) -> CredentialRecord | None:
        """Discard the cached record and resolve again from scratch."""
        self._cached = None
        self._resolved = False
        return self.resolve()
