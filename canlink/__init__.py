"""CAN frames, filters, trace files, periodic senders, sniffing and SocketCAN access."""

__version__ = "0.1.0"