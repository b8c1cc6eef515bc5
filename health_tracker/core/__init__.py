"""Session orchestration, reconciliation store and business rules"""
