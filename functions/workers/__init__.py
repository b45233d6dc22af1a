"""
Queue producer and consumer for deferred pipeline runs.
"""
