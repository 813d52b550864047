"""
Core components: application factory, lifecycle, shared domain blocks and logging.
"""
