"""Meeting module -- data models, repository, bot lifecycle, and analysis.

Provides the data layer (Pydantic schemas, SQLAlchemy models,
MeetingRepository), Recall.ai bot integration, real-time viewer broadcast,
and the per-meeting sales analysis coalescer.
"""
