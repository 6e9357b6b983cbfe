"""
Hairstyle Studio: try a new hairstyle on your own photo with an AI image editor.
"""
__version__ = "1.0.0"
