"""NestLedger: tenant billing, late fees and payment reconciliation."""
