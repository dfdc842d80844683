"""Session state layer.

Unsolicited driver notifications are normalized into events here and
only the connection session is allowed to turn them into state
transitions.
"""
