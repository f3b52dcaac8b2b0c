"""
SQLPlay HTTP shell.

A FastAPI front for the playground service:
- Browse dialects, presets and their resolved files
- Run playgrounds and stream statement, console and error events
- Save, list and delete playgrounds in the local store

Usage:
    uvicorn playground.app:app --port 8090
"""
