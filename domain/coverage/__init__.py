"""Coverage Bounded Context.

Responsible for investor coverage areas:
- Value Objects: CoverageArea, Investor, GeoBounds
- Services: CoverageAreaService, geometry validation and extents
- Drawing: DrawingSession (draw-then-name flow)
"""
