"""
cssblocks.runtime - Runtime style lookup data.
"""

from cssblocks.runtime.data import RUNTIME_DATA_HEADER, RuntimeDataGenerator, render_runtime_module

__all__ = ["RUNTIME_DATA_HEADER", "RuntimeDataGenerator", "render_runtime_module"]
