"""BioPulse — patient biomarker API with live updates.

Serves seeded patient and biomarker data over HTTP, pushes synthetic
live biomarker readings to WebSocket subscribers, and proxies analysis
requests to a separate AI commentary service.
"""

__version__ = "0.1.0"
