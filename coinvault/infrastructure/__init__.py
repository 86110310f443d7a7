"""
Infrastructure layer package.

Contains concrete implementations (adapters) of the ports
defined in the domain layer. This is where databases, hashing,
token signing, email/SMS gateways and other external integrations live.
"""
