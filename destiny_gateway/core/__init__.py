"""
Core

Configuration, exceptions, protocols and dependency wiring.
"""
