"""Audit anchoring: publish the event log's Merkle root on Ethereum.

The root is embedded in the data field of a zero-value self-send
transaction. Nothing executes on chain; the block only witnesses that the
log existed in exactly this form at that time. Anyone holding the JSONL
log can recompute the root with `digest_event_file` and compare it with
the transaction data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from daysinarow.crypto.merkle import PREFIX, MerkleTree
from daysinarow.persistence.event_log import EventLog

SEPOLIA_CHAIN_ID = 11155111

EXPLORERS = {
    1: "https://etherscan.io/tx/",
    SEPOLIA_CHAIN_ID: "https://sepolia.etherscan.io/tx/",
}


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a successful blockchain anchor."""
    merkle_root: str
    event_count: int
    tx_hash: str
    block_number: int
    chain_id: int
    timestamp_utc: str
    explorer_url: str


def event_log_root(log: EventLog) -> str:
    """Merkle root over every event hash, in log order."""
    return MerkleTree(log.event_hashes()).root


def digest_event_file(path: Path) -> tuple[str, int]:
    """Load a JSONL log (verifying every record) and return (root, count)."""
    if not path.exists():
        raise FileNotFoundError(f"Event log not found: {path}")
    log = EventLog(storage_path=path)
    return event_log_root(log), log.count


def anchor_to_chain(
    merkle_root: str,
    rpc_url: str,
    private_key: str,
    chain_id: int = SEPOLIA_CHAIN_ID,
    event_count: int = 0,
    gas: int = 30_000,
    gas_price_gwei: str = "2",
    w3: Optional[Any] = None,
) -> AnchorRecord:
    """Embed a Merkle root in a 0-value self-send and wait for one receipt.

    `w3` may be supplied to reuse an existing connection; otherwise one
    is opened against `rpc_url`.
    """
    from web3 import Web3, HTTPProvider
    from eth_account import Account

    if w3 is None:
        w3 = Web3(HTTPProvider(rpc_url))
    acct = Account.from_key(private_key)

    tx = {
        "to": acct.address,
        "value": 0,
        "gas": gas,
        "gasPrice": Web3.to_wei(gas_price_gwei, "gwei"),
        "nonce": w3.eth.get_transaction_count(acct.address),
        "chainId": chain_id,
        "data": bytes.fromhex(merkle_root.removeprefix(PREFIX)),
    }
    signed = acct.sign_transaction(tx)
    tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=300)

    tx_hex = tx_hash.hex()
    explorer = EXPLORERS.get(chain_id, "")
    return AnchorRecord(
        merkle_root=merkle_root,
        event_count=event_count,
        tx_hash=tx_hex,
        block_number=receipt["blockNumber"],
        chain_id=chain_id,
        timestamp_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        explorer_url=f"{explorer}{tx_hex}" if explorer else "",
    )
