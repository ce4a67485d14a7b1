"""BlockChat relay server.

Routes JSON envelopes between WebSocket peers identified by wallet address.
"""

__version__ = "0.1.0"
