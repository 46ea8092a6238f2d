"""
CI Bootstrap controller module.

This module contains the orchestrator that drives a bootstrap run and the
container runtime wrapper that brings the control plane's container up.
"""

from .container_runtime import ContainerRuntime
from .orchestrator import InitOptions, Orchestrator

__all__ = ["ContainerRuntime", "InitOptions", "Orchestrator"]
