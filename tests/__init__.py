"""
Test suite for the Logos client.

This package contains tests for all components of the client:
- Config: Settings, environment variables and client options
- Event System: Event registry and wire payload parsing
- VAD Engine and State Machine: Thresholds, decisions and status transitions
- Capture Controller: Listening cycles, finalize rules and teardown
- Connection and Channel: Handshake, message mapping, framing and reconnection
- Audio: Energy measure, WAV encoding and the default stream
- Client and Application: Public operations and the terminal host
- Performance: Resource use across many capture cycles
"""
