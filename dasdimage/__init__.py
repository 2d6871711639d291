"""
dasdimage - Install GPT disk images onto ECKD DASD devices

This package provides tools for low-level formatting IBM DASD devices, translating
a GPT partition table into a track-aligned fdasd layout and streaming the image
partitions onto the device.
"""

__version__ = "0.1.0"
