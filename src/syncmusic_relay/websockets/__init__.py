"""
WebSocket transport for the SyncMusic relay.
"""
