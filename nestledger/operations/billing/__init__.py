"""Billing operations: pricing, invoice lifecycle, late fees, payments and dues."""
