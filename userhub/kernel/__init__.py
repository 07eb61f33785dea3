"""
Kernel: domain entities, typed errors, persistence and application services.
"""
