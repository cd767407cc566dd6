"""
Exercise Staging API.

Claude pulls exercises out of a training video into a staging session;
a coach reviews and edits them there before committing them to the
exercise library. Packages: core (staging rules, no framework imports),
infrastructure (Snowflake, Anthropic), api (FastAPI), config.
"""

__version__ = "0.1.0"
