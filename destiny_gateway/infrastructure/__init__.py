"""
Infrastructure

Outbound integrations.
"""
