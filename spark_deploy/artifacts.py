"""
Contract artifacts: ABI and creation bytecode.

A prebuilt JSON artifact (``{"abi": [...], "bytecode": "0x..."}``) in the
build directory wins; otherwise the Vyper source under ``contracts/`` is
compiled on first use.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import vyper
from eth_abi import encode

from .create3 import deployable_bytecode
from .errors import ConfigError

CONTRACTS_DIR = Path(__file__).resolve().parent.parent / "contracts"

# Both factories share one source; they are separate deployments
CONTRACT_SOURCES = {
    "ERC6551Manager": "ERC6551Manager.vy",
    "SparkIdentityTokenFactory": "DeterministicFactory.vy",
    "SparkRegistryFactory": "DeterministicFactory.vy",
    "SparkIdentity": "SparkIdentity.vy",
    "SparkRegistry": "SparkRegistry.vy",
}


def _abi_type(item: dict) -> str:
    """Canonical ABI type, expanding tuples."""
    abi_type = item["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(_abi_type(component) for component in item["components"])
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


@dataclass
class Artifact:
    name: str
    abi: List[dict]
    bytecode: str
    source: Optional[str] = None
    source_path: Optional[Path] = None
    compiler_version: Optional[str] = None
    events: List[str] = field(init=False)

    def __post_init__(self):
        if not self.bytecode.startswith("0x"):
            self.bytecode = "0x" + self.bytecode
        self.events = [item["name"] for item in self.abi if item.get("type") == "event"]

    def constructor_types(self) -> List[str]:
        for item in self.abi:
            if item.get("type") == "constructor":
                return [_abi_type(arg) for arg in item.get("inputs", [])]
        return []

    def encode_constructor_args(self, args: Sequence) -> bytes:
        types = self.constructor_types()
        if len(types) != len(args):
            raise ValueError(f"{self.name}: expected {len(types)} constructor arguments, got {len(args)}")
        return encode(types, list(args))

    def deployable_bytecode(self, args: Sequence) -> bytes:
        return deployable_bytecode(self.bytecode, self.constructor_types(), args)


class ArtifactLoader:
    """Loads and caches artifacts by contract name."""

    def __init__(self, contracts_dir: Path = CONTRACTS_DIR, build_dir: Optional[Path] = None,
                 sources: Optional[Dict[str, str]] = None):
        self.contracts_dir = Path(contracts_dir)
        self.build_dir = Path(build_dir) if build_dir else None
        self.sources = dict(CONTRACT_SOURCES if sources is None else sources)
        self._cache: Dict[str, Artifact] = {}
        self._compiled: Dict[Path, dict] = {}

    def get(self, name: str) -> Artifact:
        if name not in self._cache:
            self._cache[name] = self._load(name)
        return self._cache[name]

    __getitem__ = get

    def _load(self, name: str) -> Artifact:
        if self.build_dir:
            prebuilt = self.build_dir / f"{name}.json"
            if prebuilt.exists():
                with open(prebuilt) as f:
                    data = json.load(f)
                return Artifact(name=name, abi=data["abi"], bytecode=data["bytecode"],
                                compiler_version=data.get("compiler_version"))

        filename = self.sources.get(name, f"{name}.vy")
        path = self.contracts_dir / filename
        if not path.exists():
            raise ConfigError(f"Contract not found: {path}")

        with open(path) as f:
            source = f.read()

        if path not in self._compiled:
            self._compiled[path] = vyper.compile_code(source, output_formats=["abi", "bytecode"])
        compiled = self._compiled[path]

        return Artifact(
            name=name,
            abi=compiled["abi"],
            bytecode=compiled["bytecode"],
            source=source,
            source_path=path,
            compiler_version=vyper_version(),
        )


def vyper_version() -> str:
    return "v" + vyper.__version__.split("+")[0]
