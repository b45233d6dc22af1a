"""
Scheduled maintenance jobs.
"""
