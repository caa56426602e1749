# Infrastructure layer - storage backends and the services built on them
"""
Infrastructure layer contains:
- Storage backends (filesystem, S3, GCS)
- Archive service (zipper)
"""
