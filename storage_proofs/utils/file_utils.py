import json
from typing import Any, Dict


def load_json(file_path: str) -> Dict[str, Any]:
    """Load and parse a JSON file"""
    with open(file_path, "r") as file:
        data = json.load(file)
    # eth_getProof dumps are sometimes saved as the raw JSON-RPC envelope
    if isinstance(data, dict) and "result" in data and "jsonrpc" in data:
        return data["result"]
    return data
