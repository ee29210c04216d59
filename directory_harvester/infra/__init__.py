"""Infra layer utilities (output storage, proxy and signature pools)."""

from .proxy_pool import ProxyPool
from .storage import OutputDirectory
from .ua_pool import BrowserSignature, SignaturePool

__all__ = ["BrowserSignature", "OutputDirectory", "ProxyPool", "SignaturePool"]
