from lendgraph.mappings.context import EventHandlerContext, VerboseConfig

from . import governance, market, pool, rewards, vtoken

__all__ = (
    "EventHandlerContext",
    "VerboseConfig",
    "governance",
    "market",
    "pool",
    "rewards",
    "vtoken",
)
