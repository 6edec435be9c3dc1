"""Telegram-facing handlers: reply delivery and inbound message hooks."""
