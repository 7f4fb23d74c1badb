"""Fluid solver and presentation passes."""

from .Copy import Copy
from .Clear import Clear
from .Color import Color
from .Splat import Splat
from .Advection import Advection
from .Divergence import Divergence
from .Curl import Curl
from .Vorticity import Vorticity
from .Pressure import Pressure
from .GradientSubtract import GradientSubtract
from .Display import Display

__all__ = [
    "Copy",
    "Clear",
    "Color",
    "Splat",
    "Advection",
    "Divergence",
    "Curl",
    "Vorticity",
    "Pressure",
    "GradientSubtract",
    "Display",
]
