"""Frame compositing and connection supervision."""
from surface_pilot.services.compositor import FrameCompositor
from surface_pilot.services.supervisor import ConnectionSupervisor

__all__ = ["FrameCompositor", "ConnectionSupervisor"]
