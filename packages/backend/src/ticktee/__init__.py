"""TickTee — points storefront backend.

Accounts earn and spend points on event tickets and merchandise. The
package holds the point ledger, order checkout, messaging, and the
real-time layer that pushes new orders, messages and products to
connected clients over WebSockets.
"""

__version__ = "0.1.0"
