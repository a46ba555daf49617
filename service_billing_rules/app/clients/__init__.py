"""
Clients for the external collaborators of the billing rules engine.
"""
