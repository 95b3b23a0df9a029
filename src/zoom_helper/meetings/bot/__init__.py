"""Meeting bot management -- Recall.ai bot lifecycle and webhook processing.

Provides RecallClient for Recall.ai REST API interaction and BotManager
for bot creation, webhook event handling, and live transcript enrichment.
"""
