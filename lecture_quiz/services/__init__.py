"""Services powering job polling, transcript reconciliation and quiz state."""
