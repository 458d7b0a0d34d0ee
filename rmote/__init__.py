"""rmote: one-way local → remote directory mirror over SFTP"""
__version__ = "0.3.0"
