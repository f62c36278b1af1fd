"""
Live Pose Overlay.

Real-time single-person pose estimation on a camera feed with a skeleton
overlay drawn on top of the video.

Modules are imported on-demand to avoid loading heavy dependencies.
"""

__version__ = "0.1.0"
__author__ = "Your Name"
