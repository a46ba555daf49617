"""
Billing Rules Service for the tenant billing platform.
"""
