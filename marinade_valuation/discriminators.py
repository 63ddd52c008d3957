"""Anchor discriminators and the registry of state-mutating instruction tags."""

import hashlib
from collections.abc import Iterable, Iterator
from types import MappingProxyType

from marinade_valuation.constants import (
    ANCHOR_ACCOUNT_NAMESPACE,
    ANCHOR_INSTRUCTION_NAMESPACE,
    DEPOSIT_TAG,
    DISCRIMINATOR_SIZE,
    STATE_ACCOUNT_NAME,
    STATE_MUTATING_INSTRUCTIONS,
    UNREGISTERED_MUTATING_INSTRUCTIONS,
)


def tag_of(name: str) -> bytes:
    """First 8 bytes of sha256 over the UTF-8 encoded canonical name."""
    return hashlib.sha256(name.encode("utf-8")).digest()[:DISCRIMINATOR_SIZE]


def instruction_tag(instruction_name: str) -> bytes:
    """Anchor instruction discriminator, e.g. `global:deposit`."""
    return tag_of(f"{ANCHOR_INSTRUCTION_NAMESPACE}:{instruction_name}")


def account_tag(account_name: str) -> bytes:
    """Anchor account discriminator, e.g. `account:State`."""
    return tag_of(f"{ANCHOR_ACCOUNT_NAMESPACE}:{account_name}")


STATE_ACCOUNT_TAG = account_tag(STATE_ACCOUNT_NAME)


class InstructionRegistry:
    """
    Immutable set of instruction tags, each mapped back to its instruction name.

    Literal tags (published in the IDL) take precedence over derived ones for the same
    name. Two names hashing to the same tag is a construction error.
    """

    def __init__(self, names: Iterable[str], literals: dict[str, bytes] | None = None):
        literals = dict(literals or {})
        by_tag: dict[bytes, str] = {}
        for name in names:
            tag = literals.pop(name, None)
            if tag is None:
                tag = instruction_tag(name)
            if len(tag) != DISCRIMINATOR_SIZE:
                raise ValueError(f"Tag for {name!r} must be {DISCRIMINATOR_SIZE} bytes, got {len(tag)}")
            other = by_tag.get(tag)
            if other is not None and other != name:
                raise ValueError(f"Discriminator collision: {name!r} and {other!r} share tag {tag.hex()}")
            by_tag[tag] = name
        if literals:
            raise ValueError(f"Literal tags given for unregistered names: {sorted(literals)}")
        self._by_tag = MappingProxyType(by_tag)

    @property
    def tags(self) -> MappingProxyType:
        """Read-only tag -> instruction name mapping."""
        return self._by_tag

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._by_tag.values())

    def name_of(self, tag: bytes) -> str | None:
        return self._by_tag.get(bytes(tag))

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, (bytes, bytearray)) and bytes(tag) in self._by_tag

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._by_tag)

    def __len__(self) -> int:
        return len(self._by_tag)

    def __repr__(self) -> str:
        return f"InstructionRegistry({sorted(self.names)})"


def registry_gaps(
    registry: InstructionRegistry, mutating: Iterable[str] = UNREGISTERED_MUTATING_INSTRUCTIONS
) -> list[str]:
    """Instructions known to mutate valuation state that `registry` does not recognise."""
    registered = registry.names
    return [name for name in mutating if name not in registered]


STATE_MUTATING_REGISTRY = InstructionRegistry(STATE_MUTATING_INSTRUCTIONS, literals={"deposit": DEPOSIT_TAG})

# Tags of known-mutating instructions left out of the registry; seen only for warnings.
UNREGISTERED_MUTATING_TAGS = MappingProxyType(
    {instruction_tag(name): name for name in registry_gaps(STATE_MUTATING_REGISTRY)}
)

