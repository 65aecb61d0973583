"""Usage Bounded Context.

Responsible for metered map-service quotas:
- Value Objects: UsageCounter, UsageStats, StaticMapFallback
- Services: UsageGovernor
"""
