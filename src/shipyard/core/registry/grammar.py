"""Identifier and logical-name grammars per network."""

import re

from shipyard.core.errors import InvalidIdentifier
from shipyard.core.project import NETWORKS

LOGICAL_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")

# Strkey contract addresses: 'C' followed by 55 base32 characters
CONTRACT_ADDRESS_RE = re.compile(r"^C[A-Z0-9]{55}$")
WASM_HASH_RE = re.compile(r"^[0-9a-f]{64}$")

_NETWORK_GRAMMARS: dict[str, tuple[re.Pattern[str], ...]] = {
    "dev": (CONTRACT_ADDRESS_RE, WASM_HASH_RE),
    "test": (CONTRACT_ADDRESS_RE,),
    "main": (CONTRACT_ADDRESS_RE,),
}


def check_network(network: str) -> str:
    if network not in NETWORKS:
        raise InvalidIdentifier(
            f"Unknown network '{network}' (expected one of: {', '.join(NETWORKS)})"
        )
    return network


def identifier_error(network: str, name: str, identifier: str) -> str | None:
    """Describe why ``name``/``identifier`` is invalid on ``network``, or None."""
    if not LOGICAL_NAME_RE.match(name):
        return f"Invalid logical name '{name}': use lowercase letters, digits and underscores"
    patterns = _NETWORK_GRAMMARS[check_network(network)]
    if not any(pattern.match(identifier) for pattern in patterns):
        if network == "dev":
            expected = "a contract address (C + 55 chars) or a 64-char hex wasm hash"
        else:
            expected = "a contract address (C + 55 uppercase alphanumeric chars)"
        return f"Invalid identifier for '{name}' on network '{network}': expected {expected}"
    return None


def validate_identifier(network: str, name: str, identifier: str) -> None:
    """Raise ``InvalidIdentifier`` unless the pair is valid on ``network``."""
    error = identifier_error(network, name, identifier)
    if error is not None:
        raise InvalidIdentifier(error)
