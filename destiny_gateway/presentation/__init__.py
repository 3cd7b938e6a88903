"""
Presentation Layer

Protocol surfaces exposed to agents.
"""
