"""
CardLedger.

Local card encyclopedia, collection ledger and set completion statistics.
"""
