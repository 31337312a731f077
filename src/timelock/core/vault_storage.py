"""
JSON persistence for a vault and its reference transfer gateway.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Tuple

from .clock import SystemClock
from .exceptions import StorageError, TimelockError
from .protocols import IClock
from .transfer_gateway import InMemoryTransferGateway, StaticAssetRegistry
from .contracts.timelock_vault import TimelockVault

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class VaultStorage:
    """
    Reads and writes `{"version", "vault", "gateway"}` documents.

    Writes go to a temporary file in the target directory and are moved into
    place with os.replace, so a crash never leaves a half-written state file.
    """

    def __init__(self, storage_path: str):
        if not storage_path:
            raise StorageError("Storage path cannot be empty.")
        self.storage_path = storage_path

    def exists(self) -> bool:
        return os.path.exists(self.storage_path)

    def save(self, vault: TimelockVault) -> None:
        gateway = vault.gateway
        document = {
            "version": STATE_VERSION,
            "vault": vault.to_dict(),
            "gateway": gateway.to_dict() if isinstance(gateway, InMemoryTransferGateway) else None,
        }

        directory = os.path.dirname(os.path.abspath(self.storage_path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".timelock-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2, sort_keys=True)
                os.replace(tmp_path, self.storage_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise StorageError(
                f"Failed to persist vault state: {exc}",
                details={"path": self.storage_path},
            ) from exc

        logger.debug(
            "Vault state persisted",
            extra={"event": "storage.saved", "path": self.storage_path, "events": len(vault.events)},
        )

    def load(self, clock: IClock | None = None) -> Tuple[TimelockVault, InMemoryTransferGateway]:
        try:
            with open(self.storage_path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except FileNotFoundError as exc:
            raise StorageError(
                f"No vault state at {self.storage_path}",
                details={"path": self.storage_path},
            ) from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(
                f"Failed to load vault state: {exc}",
                details={"path": self.storage_path},
            ) from exc

        version = document.get("version")
        if version != STATE_VERSION:
            raise StorageError(f"Unsupported vault state version: {version!r}")

        vault_data = document.get("vault") or {}
        native_asset = vault_data.get("native_asset", "XAI")
        gateway_data = document.get("gateway")
        gateway = (
            InMemoryTransferGateway.from_dict(gateway_data)
            if gateway_data
            else InMemoryTransferGateway(native_asset=native_asset)
        )

        try:
            vault = TimelockVault.from_dict(
                vault_data,
                clock=clock or SystemClock(),
                gateway=gateway,
                asset_registry=StaticAssetRegistry(native_asset),
            )
        except (KeyError, ValueError, TimelockError) as exc:
            raise StorageError(f"Corrupt vault state: {exc}", details={"path": self.storage_path}) from exc

        logger.debug(
            "Vault state loaded",
            extra={"event": "storage.loaded", "path": self.storage_path, "state": vault.state.name},
        )
        return vault, gateway
