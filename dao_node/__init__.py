"""
dao_node
--------

Staked-membership governance node: members stake to join, propose funding
from a shared treasury, vote with stake-weighted power and execute approved
proposals.
"""

__version__ = "0.1.0"
