"""keychat: small real-time chat server with optional USB-key login gating."""

__version__ = "0.1.0"
