"""TLS handshake message encoding and decoding, and CPU feature bit decoding."""

__version__ = "0.1.0"