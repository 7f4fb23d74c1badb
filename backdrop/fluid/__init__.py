from .FluidConfig import FluidConfig
from .FluidSimulation import FluidSimulation, get_resolution
from .FluidBackground import FluidBackground, PendingSplat
from .Pointer import Pointer
from .ColorGenerator import ColorGenerator, hsv_to_rgb, wrap
