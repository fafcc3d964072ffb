"""
Infrastructure layer: configuration, logging, storage backends and the
upload services built on them.
"""
