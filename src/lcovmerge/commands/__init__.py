"""
lcovmerge.commands - CLI command implementations
"""
