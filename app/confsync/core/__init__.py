"""Engine internals: repository, pipeline phases, state and orchestration."""
