"""Session orchestration and AI request services."""
