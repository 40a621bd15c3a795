"""
Liquidity Velocity Token ledger core.
"""
