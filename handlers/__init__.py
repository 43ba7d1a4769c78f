"""
handlers/ - Presentation Layer
================================
Telegram command and callback handlers. Each one parses the update, calls
PaymentService from ``context.bot_data``, and replies with the result.
No business logic lives here.
"""
