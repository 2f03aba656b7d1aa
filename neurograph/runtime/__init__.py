"""
Runtime Module

WHAT: Runtime subsystem hosting the memory embedding and knowledge graph engine
WHERE: neurograph/runtime/ - service layer above the nn primitives
WHO: Hosts constructing MemoryGraphEngine, scripts, tests
TIME: n/a

See ``neurograph.runtime.memory`` for the public surface.
"""

__all__ = ["memory"]
