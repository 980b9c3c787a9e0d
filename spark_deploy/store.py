"""
Config Store: the deployment-config JSON file as a versioned repository.

Each read returns the document together with a version (SHA-256 of the
file bytes). A write names the version it was based on and fails with
``StaleConfigError`` if the file changed in the meantime. Writes are
serialised through a lock file and land atomically via ``os.replace``.
"""

import copy
import hashlib
import json
import os
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from .config import NetworkDeploymentConfig, parse_document
from .errors import ConfigError, StaleConfigError

DEFAULT_CONFIG_PATH = Path("config/deployment-config.json")


@dataclass(frozen=True)
class ConfigSnapshot:
    document: dict
    version: Optional[str]


def _version(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class ConfigStore:

    def __init__(self, path: Path = DEFAULT_CONFIG_PATH, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    def _read_raw(self) -> Optional[bytes]:
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def read(self) -> ConfigSnapshot:
        raw = self._read_raw()
        if raw is None:
            return ConfigSnapshot(document={}, version=None)
        try:
            document = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise ConfigError(f"{self.path} is not valid JSON: {e}")
        if not isinstance(document, dict):
            raise ConfigError(f"{self.path} must contain a JSON object")
        return ConfigSnapshot(document=document, version=_version(raw))

    @contextmanager
    def _locked(self):
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if time.monotonic() > deadline:
                    raise ConfigError(
                        f"Timed out waiting for {self.lock_path}; remove it if no deployment is running"
                    )
                time.sleep(0.05)
        try:
            os.write(fd, str(os.getpid()).encode())
            yield
        finally:
            os.close(fd)
            os.unlink(self.lock_path)

    def write(self, document: dict, expected_version: Optional[str]) -> str:
        """Compare-and-swap write. Returns the new version."""
        payload = (json.dumps(document, indent=4) + "\n").encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with self._locked():
            raw = self._read_raw()
            current = None if raw is None else _version(raw)
            if current != expected_version:
                raise StaleConfigError(
                    f"{self.path} changed since it was read (expected {expected_version}, found {current})"
                )

            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

        return _version(payload)

    def update(self, mutator: Callable[[dict], Any], attempts: int = 3) -> ConfigSnapshot:
        """
        Read, apply ``mutator`` to a copy of the document, write back.

        The mutator edits the document in place. A stale write is retried
        from a fresh read.
        """
        for attempt in range(1, attempts + 1):
            snapshot = self.read()
            document = copy.deepcopy(snapshot.document)
            mutator(document)
            try:
                version = self.write(document, snapshot.version)
                return ConfigSnapshot(document=document, version=version)
            except StaleConfigError:
                if attempt == attempts:
                    raise

    def record_deployment(self, network: str, contract: str, address: str) -> Optional[str]:
        """Set ``contractAddress`` for one contract. Returns the address it replaced."""
        previous = {}

        def mutate(document):
            entry = document.setdefault(network, {})
            section = entry.setdefault(contract, {})
            previous["address"] = section.get("contractAddress")
            section["contractAddress"] = address

        self.update(mutate)
        return previous.get("address")

    def network_config(self, network: str) -> NetworkDeploymentConfig:
        return parse_document(self.read().document, network)
