#!/usr/bin/env python3
"""
UFW Abuse Reporter

Tails the UFW block log and reports offending source addresses to an
abuse database, at most once per cooldown window per address.
"""

__version__ = "1.0.0"
