"""
CI Bootstrap tunnel module.

Manages the ephemeral public tunnel that exposes the local control plane
to the hosting platform's webhooks.
"""

from .manager import TunnelManager, select_public_url
from .process import TunnelProcess

__all__ = ["TunnelManager", "TunnelProcess", "select_public_url"]
