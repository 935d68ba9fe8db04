"""Stock Ledger API Schemas"""
