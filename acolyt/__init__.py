"""Acolyt: a chat bot that answers with context retrieved from training notes."""
