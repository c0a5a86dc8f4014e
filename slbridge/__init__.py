"""Building blocks for bridging slmodemd socket audio to RTP with G.711 µ-law conversion."""

__version__ = "0.2.0"