"""
dao_node.dao_runtime
--------------------

Core runtime: membership, proposals, treasury, administrative control and
the governance engine that ties them together. Nothing in this package
knows about HTTP or configuration files.
"""

from .engine import DaoState, GovernanceEngine, system_clock
from .errors import GovernanceError
from .params import DEFAULT_PARAMS, UNIT, GovernanceParams
from .transfers import LedgerValueSink, ValueSink

__all__ = [
    "DaoState",
    "GovernanceEngine",
    "GovernanceError",
    "GovernanceParams",
    "DEFAULT_PARAMS",
    "UNIT",
    "LedgerValueSink",
    "ValueSink",
    "system_clock",
]
