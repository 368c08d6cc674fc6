"""
Toolshop Bot
============

Backend for a power tool repair shop: quotes per machine, WhatsApp delivery of
the quote, and the client's WhatsApp authorization (all, none, some machines,
or talk to an advisor) applied to the equipment statuses.
"""

__version__ = "1.0.0"
