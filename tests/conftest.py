"""Shared fixtures for registry tests."""

import pytest

from template_registry import TemplateRegistry

OWNER = "ST1OWNER"
OTHER = "ST2OTHER"
HASH_A = bytes(range(32))
HASH_B = bytes([0xAB] * 32)


@pytest.fixture
def registry() -> TemplateRegistry:
    return TemplateRegistry()


@pytest.fixture
def vault(registry: TemplateRegistry) -> int:
    """Register the 'Vault' template as OWNER at height 1."""
    return registry.register_template(
        "Vault",
        "Time-locked STX vault",
        ["defi"],
        ["2.1"],
        ["stacks"],
        caller=OWNER,
        height=1,
    )
