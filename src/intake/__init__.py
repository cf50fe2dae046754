"""intake-core: resilient bug-report intake.

A submission is enriched, filed as an issue and mirrored as a task.  Each
provider call runs behind a circuit breaker with bounded retry; anything
that does not complete lands in a recoverable queue that a recovery sweep
drains without repeating stages that already succeeded.
"""

__version__ = "0.1.0"
