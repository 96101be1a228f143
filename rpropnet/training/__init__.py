"""Training loop, error functions and multi-repetition orchestration."""
