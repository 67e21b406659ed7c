"""
Recurring Task Scheduler Test Suite.

- Recurrence math with an explicit "now"
- Time helpers across DST
- Single worker, container lifecycle, service registration
- Command execution and interruption
"""
