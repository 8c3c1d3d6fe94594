"""
HR Transaction Settlement Core
"""
