"""
Simulation store: async, append-only SQLite log of served predictions.

Modules
-------
simulation_store : SimulationStore — append, clear, query, query_recent.
"""
