"""
Dependents discovery pipeline.
"""
