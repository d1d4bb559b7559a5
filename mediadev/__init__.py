"""Driver registry, raw frame decoders, synthetic test sources and a VNC framebuffer device."""

__version__ = "0.1.0"