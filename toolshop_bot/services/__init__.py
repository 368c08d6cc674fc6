"""
Services Package for Toolshop Bot
=================================

Business logic used by the routes and by the inbound WhatsApp worker.

- equipment.py: Equipment status changes and history
- pending.py: Pending WhatsApp authorizations (one per phone)
- notifications.py: Message texts for clients and the parts department
- authorization.py: The client's answers to a quote, applied to the order
- dispatch.py: Operator-initiated sends (quote, free text, notifications)
- quotes.py: Per-machine quotes and order totals
- drafting.py: Quote totals and the quote message (OpenAI)
- inbound.py: Worker thread feeding inbound messages to authorization.py
- locks.py: Per-phone locks shared by authorization.py and dispatch.py
- message_log.py: Provider message ids already applied, to drop redeliveries
"""
