"""
Guest program registry.

The compiled guest ELFs are build artifacts, so the registry is read from a
YAML manifest that maps each method to its binary and image id:

    schema: proof_publisher_guests
    schema_version: 1
    programs:
      is_even:
        method: numeric-check
        elf: target/riscv-guest/riscv32im-risc0-zkvm-elf/release/is-even
        image_id: "0x..."

Relative `elf` paths are resolved against the manifest's directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from ..codec.canonical import canonical_hex_fixed_allow_0x
from ..core.errors import ConfigError
from ..core.methods import GuestProgram, Method, parse_method

MANIFEST_SCHEMA = "proof_publisher_guests"
MANIFEST_SCHEMA_VERSION = 1
IMAGE_ID_BYTES = 32

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_MANIFEST_PATH = ROOT / "guests" / "methods.yaml"


def _parse_program(name: str, raw: Any, *, base_dir: Path) -> tuple[Method, GuestProgram]:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"guest {name!r} must be a mapping")
    method = parse_method(raw.get("method", ""))
    elf = raw.get("elf")
    if not isinstance(elf, str) or not elf:
        raise ConfigError(f"guest {name!r} is missing 'elf'")
    elf_path = Path(elf)
    if not elf_path.is_absolute():
        elf_path = base_dir / elf_path

    image_id = raw.get("image_id")
    if image_id is not None:
        try:
            image_id = canonical_hex_fixed_allow_0x(str(image_id), nbytes=IMAGE_ID_BYTES, name=f"{name}.image_id")
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
    return method, GuestProgram(name=name, elf_path=elf_path, image_id=image_id)


def parse_manifest(doc: Any, *, base_dir: Path) -> Dict[Method, GuestProgram]:
    if not isinstance(doc, Mapping):
        raise ConfigError("guest manifest must be a mapping")
    if doc.get("schema") != MANIFEST_SCHEMA:
        raise ConfigError(f"guest manifest schema must be {MANIFEST_SCHEMA!r}")
    if doc.get("schema_version") != MANIFEST_SCHEMA_VERSION:
        raise ConfigError(f"unsupported guest manifest schema_version: {doc.get('schema_version')!r}")
    programs = doc.get("programs")
    if not isinstance(programs, Mapping) or not programs:
        raise ConfigError("guest manifest must list at least one program")

    registry: Dict[Method, GuestProgram] = {}
    for name, raw in programs.items():
        method, program = _parse_program(str(name), raw, base_dir=base_dir)
        if method in registry:
            raise ConfigError(f"method {method.value!r} is bound to more than one guest")
        registry[method] = program
    return registry


def load_guest_registry(path: Path | str = DEFAULT_MANIFEST_PATH) -> Dict[Method, GuestProgram]:
    manifest = Path(path)
    try:
        text = manifest.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read guest manifest {manifest}: {exc}") from exc
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid guest manifest {manifest}: {exc}") from exc
    return parse_manifest(doc, base_dir=manifest.resolve().parent)
