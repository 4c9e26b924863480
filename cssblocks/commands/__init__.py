"""
cssblocks.commands - CLI command implementations.
"""
