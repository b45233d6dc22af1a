"""
Cache of pipeline results, with history and background refresh.
"""
