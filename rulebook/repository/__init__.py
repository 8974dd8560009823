"""Repository model and the collaborators the settings screen talks to."""
