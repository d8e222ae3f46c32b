"""Bitcoin block types, block tree, header store, fee percentiles, metrics and chunked upload."""

__version__ = "0.1.0"