"""
HTTP control plane for the scheduler.
"""
