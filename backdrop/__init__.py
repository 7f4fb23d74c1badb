"""Fluid simulation backdrop for OpenGL render loops."""

from .ConfigBase import ConfigBase, config_field
from .fluid import FluidBackground, FluidConfig, FluidSimulation
