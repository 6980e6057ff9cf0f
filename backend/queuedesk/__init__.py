"""QueueDesk: queue snapshot reconciliation and wait-time estimation."""
