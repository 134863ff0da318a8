"""
roomba_oi
Codec and host-side service for the iRobot Roomba / Create 2 Open Interface.

Layers:
  l0_core    errors, events, event bus
  l1_drivers byte transports (pyserial, in-memory)
  l2_oi      protocol catalogs, validation, encoding, decoding, service
"""

__version__ = "0.1.0"
