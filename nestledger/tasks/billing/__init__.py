"""Billing background tasks."""
