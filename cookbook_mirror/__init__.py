"""
Mirror Chef cookbooks into Gerrit and sync their project configuration.
"""

__version__ = "1.0.0"
