"""
S3 storage client, lifecycle operations and content eviction.
"""
