"""Per-screen state machines driven by the orchestrator."""
