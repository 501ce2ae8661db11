"""
Image geometry, compositing and object detection services.
"""
