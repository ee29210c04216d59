"""Request disguise chain and policy."""

from .chain import DisguiseChain, DisguiseContext, RequestProfile, Strategy
from .policy import RequestDisguisePolicy, build_policy

__all__ = [
    "DisguiseChain",
    "DisguiseContext",
    "RequestDisguisePolicy",
    "RequestProfile",
    "Strategy",
    "build_policy",
]
