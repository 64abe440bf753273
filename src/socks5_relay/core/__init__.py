"""Core relay implementation.

This package contains the core components of the SOCKS5 relay:
- Protocol engine (negotiation, request parsing, dialing, relay)
- Immutable server configuration
- Threaded listener
- Public address discovery over STUN
- Local interface listing
- Exception handling

The core package provides all the functionality needed to run the relay,
while keeping the implementation details separate from the command-line
interface.
"""
