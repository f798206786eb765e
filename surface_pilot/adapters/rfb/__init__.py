"""RFB (VNC) display-protocol surface."""
from surface_pilot.adapters.rfb.surface import RfbSurface

__all__ = ["RfbSurface"]
