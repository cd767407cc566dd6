"""
Adapters for the services the staging core talks to.

anthropic implements the ExerciseExtractor protocol; snowflake provides
the session, library and workout repositories plus in-memory twins used
in mock mode.
"""
