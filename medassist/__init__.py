"""MedAssist: medical intake forms and AI-assisted health conversations."""
