"""Service layer: job lifecycle, orchestration and the job-control facade."""
