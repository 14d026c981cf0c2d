"""
datasubjects: locate, erase and export the personal data of identified visits.

Tables are contributed at runtime by plugins and declare individually how they
join to one another; the engine resolves each table back to the visit anchors
and processes them in an order that keeps join bridges alive until they are
no longer needed.
"""

__version__ = "0.3.0"
