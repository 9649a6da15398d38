"""
StakeVault - fixed-rate token staking ledger.
"""

__version__ = "0.1.0"
