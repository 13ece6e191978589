"""Teller Simulator - mock backend for teller-assisted self-service terminals.

Speaks JSON-RPC 2.0 over WebSocket to terminals, answers with simulated
device behaviour and mirrors all traffic to observer connections.
"""

__version__ = "0.1.0"
