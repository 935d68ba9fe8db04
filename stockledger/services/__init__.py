"""Stock Ledger Services"""
