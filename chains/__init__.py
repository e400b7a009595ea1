"""
chains - External collaborators of the decision pipeline.

- interfaces.py: Capability protocols (PriceSource, PoolQuoter, ...)
- providers.py: JSON-RPC provider with failover
- quotes.py: Router pool quoter, RPC gas estimator, HTTP CEX ticker
- balances.py: Wallet and vault balance sources
- paper.py: Dry-run chain submitter
- advisory_http.py: HTTP advisory service client
"""

from chains.interfaces import (
    AdvisoryService,
    BalanceSource,
    ChainSubmitter,
    GasEstimator,
    PoolQuoter,
    PriceSource,
)

__all__ = [
    "AdvisoryService",
    "BalanceSource",
    "ChainSubmitter",
    "GasEstimator",
    "PoolQuoter",
    "PriceSource",
]
