"""
Identity bounded context — domain layer.

This module contains all domain logic for the identity context:
- Accounts, KYC identifiers and email preferences
- OTP sessions and login audit entries
- Notification variants and their rendering
- Ports for storage, hashing, tokens, messaging and time
"""
