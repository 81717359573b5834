"""Console and JSON output for the CLI"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from rich.console import Console
from rich.table import Table

console = Console()

OUTPUT_DIR = "output"


def format_address(address: Optional[str]) -> str:
    """0x1234...5678"""
    if not address:
        return "N/A"
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_hex(value: str, length: int = 18) -> str:
    """Shorten a hash or RLP blob to ``length`` characters"""
    if len(value) <= length:
        return value
    return f"{value[:length - 4]}...{value[-4:]}"


def save_json_output(
    data: Mapping[str, Any], filename: str, output_dir: str = OUTPUT_DIR
) -> Path:
    """Write ``data`` as indented JSON under ``output_dir`` and print where"""
    path = Path(output_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    console.print(f"[cyan]Saved to:[/cyan] {path}")
    return path


def create_slots_table(slots: Mapping[str, Optional[int]], minime: bool = False) -> Table:
    """One row per holder; holders whose discovery failed show a dash"""
    table = Table(title="Checkpoint map slots" if minime else "Balance slots")
    table.add_column("Holder", style="cyan")
    table.add_column("Slot", justify="right", style="green")
    for holder, slot in slots.items():
        table.add_row(format_address(holder), "-" if slot is None else str(slot))
    return table


def create_proof_table(proof: Dict[str, Any]) -> Table:
    """Summary of a FullProof.to_dict() payload"""
    table = Table(title="Storage proof", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Block", str(proof["block_number"]))
    table.add_row("Block hash", format_hex(proof["block_hash"]))
    table.add_row("State root", format_hex(proof["state_root"]))
    table.add_row("Account proof RLP", format_hex(proof["account_proof_rlp"]))
    for index, storage_rlp in enumerate(proof["storage_proofs_rlp"]):
        key = proof["proof"]["storageProof"][index]["key"]
        table.add_row(f"Slot {format_hex(key)}", format_hex(storage_rlp))
    return table
