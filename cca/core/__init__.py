"""
CCA core: auction engine, assets, hooks, events and configuration.
"""
