"""
Utility functions for the MoMo Wallet backend.

This package contains:
- datetime_utils: UTC timestamps and epoch milliseconds
- decimal_utils: Money parsing and truncation to column precision
"""
