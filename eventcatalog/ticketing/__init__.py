"""Ticket-platform client, cache refresh and cross-source matcher."""
