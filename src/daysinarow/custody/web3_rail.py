"""Ethereum fund rail: custody is an externally owned account.

Payouts are plain value transfers signed locally with eth-account and
broadcast through web3. Each engine operation sends at most one
transaction and only after every precondition has passed, so there is
nothing to roll back on the chain side; `atomic()` is a no-op scope.

Deposits arrive with the user's own transaction to the custody address.
`receive` only confirms the custody account can cover the amount.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any, ContextManager, List

from daysinarow.errors import TransferError

SEPOLIA_CHAIN_ID = 11155111


class Web3Rail:
    """Pays out of a custody key through an Ethereum JSON-RPC node.

    Usage:
        rail = Web3Rail.connect(rpc_url, private_key)
        rail.transfer("0xabc...", 975 * 10**15)
        rail.sent_transactions   # ["0x...", ...]
    """

    def __init__(
        self,
        w3: Any,
        private_key: str,
        chain_id: int = SEPOLIA_CHAIN_ID,
        gas: int = 21_000,
        gas_price_gwei: str = "2",
        receipt_timeout: int = 300,
    ) -> None:
        from eth_account import Account

        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_gwei = gas_price_gwei
        self._receipt_timeout = receipt_timeout
        self._sent: List[str] = []

    @classmethod
    def connect(
        cls,
        rpc_url: str,
        private_key: str,
        chain_id: int = SEPOLIA_CHAIN_ID,
        **kwargs: Any,
    ) -> Web3Rail:
        from web3 import Web3, HTTPProvider

        return cls(Web3(HTTPProvider(rpc_url)), private_key, chain_id, **kwargs)

    @property
    def custody_address(self) -> str:
        return self._account.address

    @property
    def sent_transactions(self) -> List[str]:
        return list(self._sent)

    def receive(self, sender: str, amount: int) -> None:
        balance = self._w3.eth.get_balance(self.custody_address)
        if balance < amount:
            raise TransferError(
                f"Deposit from {sender} not covered by custody balance "
                f"({balance} < {amount})"
            )

    def transfer(self, recipient: str, amount: int) -> None:
        from web3 import Web3
        from web3.exceptions import Web3Exception

        tx = {
            "to": Web3.to_checksum_address(recipient),
            "value": amount,
            "gas": self._gas,
            "gasPrice": Web3.to_wei(self._gas_price_gwei, "gwei"),
            "nonce": self._w3.eth.get_transaction_count(self.custody_address),
            "chainId": self._chain_id,
        }
        signed = self._account.sign_transaction(tx)
        try:
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except (Web3Exception, ValueError) as e:
            raise TransferError(f"Transfer to {recipient} failed: {e}") from e

        if receipt["status"] != 1:
            raise TransferError(
                f"Transfer to {recipient} reverted in block {receipt['blockNumber']}"
            )
        self._sent.append(tx_hash.hex())

    def atomic(self) -> ContextManager[None]:
        return nullcontext()
