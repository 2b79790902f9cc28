"""State layer.

The value store is the single place source updates land in; the change
signal tells the output loop that a fresh render is due.
"""
