"""AI analysis service — biomarker commentary from a generative model.

Runs as its own process (biopulse-ai, port 3001). The patient API
reaches it over HTTP through services.analysis_client.
"""
