"""HTTP service that runs WAVE joins as background jobs.

WHY: Lets other processes submit clips for joining over HTTP, track
progress and cancel, without shelling out to the CLI.

HOW: app.py defines the FastAPI routes, jobs.py the thread-safe job store,
models.py the response schemas.

RULES:
- One temp directory per job holds its inputs and output
- Job state lives in memory only
"""
