"""
Timelock vault: custodial linear-vesting ledger with a cliff.
"""

__version__ = "0.1.0"
