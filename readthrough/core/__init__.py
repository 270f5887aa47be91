"""
Core layer: configuration, logging, exceptions, interfaces and the ambient
call context shared by every other layer.
"""
