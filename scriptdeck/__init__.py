"""scriptdeck - run a folder of shell scripts on demand.

Scripts are spawned under a bounded-concurrency queue with per-script
timeouts, cancellation and a durable execution history.
"""

__version__ = "0.3.0"
