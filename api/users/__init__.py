"""
The signed-in user's profile, recipes and stats.
"""
