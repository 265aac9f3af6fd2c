#!/usr/bin/env python3
"""
Self-address discovery.
"""

from .self_ips import SelfAddressProvider, StaticAddressProvider

__all__ = [
    'SelfAddressProvider',
    'StaticAddressProvider',
]
