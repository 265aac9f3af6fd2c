#!/usr/bin/env python3
"""
UFW Reporter command line.
"""
