"""
Command-line interface for ReserveProof.
"""
