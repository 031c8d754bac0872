"""Custody subsystem: fund rails moving value in and out of escrow."""

from daysinarow.custody.rail import FundsRail, InMemoryRail, TransferRecord
from daysinarow.custody.web3_rail import Web3Rail

__all__ = [
    "FundsRail",
    "InMemoryRail",
    "TransferRecord",
    "Web3Rail",
]
