"""
Engines - self-contained processing units with no database dependency.
"""
