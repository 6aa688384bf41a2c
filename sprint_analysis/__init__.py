"""
Multi-camera sprint analysis.

Turns contact events filmed by several fixed cameras into one continuous
step stream of a sprint and fits its horizontal force-velocity profile.

Modules are imported on-demand to keep the package import light.
"""

__version__ = "0.1.0"
