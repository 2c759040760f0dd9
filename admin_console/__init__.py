"""
Admin console data layer.
"""
