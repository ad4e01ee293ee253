"""
packsync: incremental, verifiable synchronization of packwiz-style content packs.
"""

__version__ = "0.3.0"
