"""Skeleton overlay rendering."""

from live_pose.render.skeleton_renderer import RenderablePose, draw_overlay, render_pose

__all__ = ["RenderablePose", "render_pose", "draw_overlay"]
