"""
Proof publisher: prove a guest computation and publish the result to an app contract.
"""

__version__ = "0.1.0"
