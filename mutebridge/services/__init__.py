"""Collaborators the connection manager depends on: discovery and microphone control."""
