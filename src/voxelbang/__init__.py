"""voxel-bang: shared block-world server and multi-client scenario harness."""

__version__ = "0.1.0"
