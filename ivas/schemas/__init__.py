"""Pydantic schemas for requests, responses and realtime events."""
