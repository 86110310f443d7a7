"""HTTP interface for the identity bounded context."""
