"""
Kernel - data models, identity, permissions, storage and audit log.
"""
