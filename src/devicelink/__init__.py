"""Client for the length-prefixed, AES-256-CTR encrypted device protocol on TCP port 8098."""

__version__ = "0.4.0"
