"""
lcovmerge.utilities - Digest, codec and file access helpers
"""
