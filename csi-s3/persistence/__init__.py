"""
Persisted volume records.
"""
