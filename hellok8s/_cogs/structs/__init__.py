"""
All the structures and types used across the package.

Structs do not depend on the clients, the configs, or the core parts.
They only describe the data and provide the pure functions over them.
"""
