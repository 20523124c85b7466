"""
Stageline Utils - Logging, redaction and console display.
"""
