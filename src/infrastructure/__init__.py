"""Infrastructure Layer.

Adapters implementing the domain ports (folium, SQLAlchemy, JSON files) and
the composition root that wires them.
"""
