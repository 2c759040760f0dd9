"""
Admin console data-synchronization application package.
"""
