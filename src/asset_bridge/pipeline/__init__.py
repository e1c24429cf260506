"""Import pipeline: orchestration, statistics, run logging and runners."""
