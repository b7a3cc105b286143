"""
Prometheus metrics for state machine activity.

Collectors are module level and labelled by machine name, so any number of
machine instances can share them without re-registering.
"""

from prometheus_client import Counter, Histogram

transitions_total = Counter(
    'workflow_transitions_total',
    'Total state transitions',
    labelnames=['machine', 'from_state', 'to_state', 'trigger']
)

rejected_triggers_total = Counter(
    'workflow_rejected_triggers_total',
    'Triggers fired with no permitted transition',
    labelnames=['machine', 'state', 'trigger']
)

action_failures_total = Counter(
    'workflow_action_failures_total',
    'Entry or exit actions that raised',
    labelnames=['machine', 'state', 'action']
)

fire_latency = Histogram(
    'workflow_fire_latency_seconds',
    'Latency of fire() calls including actions',
    labelnames=['machine'],
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1)
)
