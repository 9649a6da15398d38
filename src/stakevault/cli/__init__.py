"""StakeVault command-line interface."""
