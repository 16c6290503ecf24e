"""
Archive Domain

Groups detection images into motion events and archives or purges them
once their retention window has passed:
- Identity → derive the event from the timestamp in the filename
- Discovery → sweep up companion videos and annotated images
- Manager → periodic archive pass with bounded retries
"""

__all__ = ["discovery", "file_ops", "identity", "manager", "motion_event", "watcher"]
