"""
kubeclean - Kubernetes Pod Cleanup Controller

A Python application that periodically deletes pods matching
operator-defined cleanup rules (phase, TTL, namespace and labels).
"""

__version__ = "1.0.0"
__author__ = "kubeclean Team"
