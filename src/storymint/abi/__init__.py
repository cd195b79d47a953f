"""StoryNFT contract ABI, shipped as package data."""

import json
from functools import lru_cache
from importlib import resources


@lru_cache(maxsize=None)
def get_contract_abi(contract_name: str = "StoryNFT") -> list[dict]:
    """Load a contract ABI bundled next to this module (cached after first read).

    Raises:
        FileNotFoundError: No <contract_name>.json in the package
    """
    abi_file = resources.files(__name__).joinpath(f"{contract_name}.json")
    if not abi_file.is_file():
        raise FileNotFoundError(f"ABI file not found for contract {contract_name!r}")
    return json.loads(abi_file.read_text(encoding="utf-8"))
