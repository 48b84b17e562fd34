# File location: nssf/config/__init__.py
# Configuration package for the NSSF slice selection service

from .ports import NF_PORTS, get_port

__all__ = ["NF_PORTS", "get_port"]
